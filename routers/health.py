from fastapi import APIRouter
import requests
import config

router = APIRouter()


@router.get("/api/health")
def health(probe: bool = False):
    result = {
        "status": "ok",
        "deepgram": "configured" if config.DEEPGRAM_API_KEY else "missing",
        "openai": "configured" if config.OPENAI_API_KEY else "missing",
    }
    if not probe:
        return result

    # ?probe=true のときだけ上流まで疎通確認する
    try:
        r = requests.get(
            f"{config.OPENAI_BASE}/v1/models",
            headers={"Authorization": f"Bearer {config.OPENAI_API_KEY}"},
            timeout=config.TIMEOUT,
        )
        r.raise_for_status()
        result["openai"] = "up"
    except Exception as e:
        result["openai"] = "down"
        result["openai_error"] = str(e)[:160]

    try:
        r = requests.get(
            f"{config.DEEPGRAM_BASE}/v1/projects",
            headers={"Authorization": f"Token {config.DEEPGRAM_API_KEY}"},
            timeout=config.TIMEOUT,
        )
        r.raise_for_status()
        result["deepgram"] = "up"
    except Exception as e:
        result["deepgram"] = "down"
        result["deepgram_error"] = str(e)[:160]

    if result["openai"] != "up" or result["deepgram"] != "up":
        result["status"] = "degraded"
    return result
