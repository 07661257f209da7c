import asyncio
import logging

import requests

import config
from errors import SynthesisFailed

logger = logging.getLogger(__name__)


def synthesize(reply_text: str, voice_id: str, base_url: str | None = None) -> bytes:
    logger.info("synthesize ready...")
    base_url = base_url or config.RELAY_BASE
    try:
        s = requests.post(
            f"{base_url}/api/tts",
            json={"text": reply_text, "voice": voice_id},
            timeout=config.REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"[tts] relay unreachable: {e!r}")
        raise SynthesisFailed(0, str(e)) from e
    if not s.ok:
        raise SynthesisFailed(s.status_code, s.text[:300])
    logger.info(f"synthesized {len(s.content)} bytes with voice={voice_id}")
    return s.content


class RelaySynthesizer:
    def __init__(self, base_url: str | None = None):
        self.base_url = base_url

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        return await asyncio.to_thread(synthesize, text, voice_id, self.base_url)
