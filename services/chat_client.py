import asyncio
import logging

import requests

import config
from errors import ResponseFailed

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "I'm not sure how to respond to that."


def chat(messages: list[dict], system_prompt: str, base_url: str | None = None) -> str:
    base_url = base_url or config.RELAY_BASE
    # システムプロンプトはリレー側で先頭に積まれる
    payload = {
        "messages": messages,
        "systemPrompt": system_prompt,
    }
    try:
        r = requests.post(f"{base_url}/api/chat", json=payload, timeout=config.REQUEST_TIMEOUT)
    except requests.RequestException as e:
        logger.error(f"[chat] relay unreachable: {e!r}")
        raise ResponseFailed(0, str(e)) from e
    if not r.ok:
        logger.error(f"[chat] relay error {r.status_code}: {r.text[:300]}")
        raise ResponseFailed(r.status_code, r.text[:300])

    try:
        reply_text = r.json()["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError, ValueError):
        reply_text = None
    return reply_text or FALLBACK_REPLY


class RelayResponder:
    def __init__(self, base_url: str | None = None):
        self.base_url = base_url

    async def respond(self, messages: list[dict], system_instructions: str) -> str:
        return await asyncio.to_thread(chat, messages, system_instructions, self.base_url)
