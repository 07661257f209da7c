import logging
from pathlib import Path

import config

# 1リクエストごとに接続ログを出すライブラリ
NOISY_LOGGERS = ("urllib3", "httpx", "multipart")


def resolve_level(level: int | str) -> int:
    """Accept a level number or a name such as ``"debug"``; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).strip().upper(), logging.INFO)


def setup_logging(log_path: str | None = None, level: int | str | None = None) -> None:
    log_path = log_path or config.LOG_PATH
    level = resolve_level(config.LOG_LEVEL if level is None else level)

    root = logging.getLogger()
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        return

    log_formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s : [%(name)s] %(message)s - (%(filename)s : %(lineno)s)"
    )

    # 画面には指定レベル以上
    s_handler = logging.StreamHandler()
    s_handler.setFormatter(log_formatter)
    s_handler.setLevel(level)
    root.addHandler(s_handler)

    # ファイルには状態遷移も含めて全部残す
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
    f_handler = logging.FileHandler(log_path, encoding="utf-8")
    f_handler.setFormatter(log_formatter)
    f_handler.setLevel(logging.DEBUG)
    root.addHandler(f_handler)
