import asyncio
import logging

import requests

import config
from audio.recorder import RecordedSegment
from errors import TranscriptionFailed

logger = logging.getLogger(__name__)


def _extract_transcript(data: dict) -> str:
    top = data.get("transcript")
    if isinstance(top, str) and top.strip():
        return top
    try:
        return data["results"]["channels"][0]["alternatives"][0]["transcript"] or ""
    except (KeyError, IndexError, TypeError):
        return ""


def transcribe(segment: RecordedSegment, base_url: str | None = None) -> str:
    base_url = base_url or config.RELAY_BASE
    try:
        r = requests.post(
            f"{base_url}/api/stt",
            data=segment.data,
            headers={"Content-Type": segment.mime_type},
            timeout=config.REQUEST_TIMEOUT,
        )
    except requests.RequestException as e:
        logger.error(f"[stt] relay unreachable: {e!r}")
        raise TranscriptionFailed(0, str(e)) from e
    if not r.ok:
        raise TranscriptionFailed(r.status_code, r.text[:300])

    try:
        data = r.json()
    except ValueError:
        data = {}
    text = _extract_transcript(data if isinstance(data, dict) else {}).strip()
    logger.info(f"transcribe_result: {text}")
    return text


class RelayTranscriber:
    def __init__(self, base_url: str | None = None):
        self.base_url = base_url

    async def transcribe(self, segment: RecordedSegment) -> str:
        return await asyncio.to_thread(transcribe, segment, self.base_url)
