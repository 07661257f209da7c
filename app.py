from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import config

from routers.health import router as health_router
from routers.relay import router as relay_router


def create_app() -> FastAPI:
    config.load_config()

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")

    app = FastAPI(title="voice relay")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health_router)
    app.include_router(relay_router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=config.PORT)
