"""Credential-holding relay: forwards STT, chat and TTS calls to the providers."""

import logging

import requests
from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, StreamingResponse

import config

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _json_body(request: Request) -> dict:
    # 空ボディや配列は項目なしとして扱い、各エンドポイントの400に回す
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/stt")
async def speech_to_text(request: Request):
    if not config.DEEPGRAM_API_KEY:
        return _error(500, "Deepgram API key not configured")

    body = await request.body()
    content_type = request.headers.get("content-type", "audio/webm")
    try:
        r = await run_in_threadpool(
            requests.post,
            f"{config.DEEPGRAM_BASE}/v1/listen",
            params={"model": config.DEEPGRAM_STT_MODEL, "smart_format": "true"},
            headers={
                "Authorization": f"Token {config.DEEPGRAM_API_KEY}",
                "Content-Type": content_type,
            },
            data=body,
            timeout=config.REQUEST_TIMEOUT,
        )
        if not r.ok:
            logger.error(f"Deepgram STT error: {r.text[:300]}")
            return _error(r.status_code, "STT failed")
        return r.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"STT error: {e!r}")
        return _error(500, "Internal server error")


@router.post("/chat")
async def chat(request: Request):
    if not config.OPENAI_API_KEY:
        return _error(500, "OpenAI API key not configured")

    payload = await _json_body(request)
    messages = payload.get("messages")
    if not isinstance(messages, list):
        return _error(400, "Invalid messages format")

    # 先頭にシステムメッセージを積む
    openai_messages = [
        {"role": "system", "content": payload.get("systemPrompt") or config.RELAY_SYSTEM_PROMPT},
        *messages,
    ]
    try:
        r = await run_in_threadpool(
            requests.post,
            f"{config.OPENAI_BASE}/v1/chat/completions",
            headers={"Authorization": f"Bearer {config.OPENAI_API_KEY}"},
            json={
                "model": config.OPENAI_MODEL,
                "max_tokens": config.OPENAI_MAX_TOKENS,
                "messages": openai_messages,
            },
            timeout=config.REQUEST_TIMEOUT,
        )
        if not r.ok:
            logger.error(f"OpenAI API error: {r.text[:300]}")
            return _error(r.status_code, "AI request failed")
        return r.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Chat error: {e!r}")
        return _error(500, "Internal server error")


@router.post("/tts")
async def text_to_speech(request: Request):
    if not config.DEEPGRAM_API_KEY:
        return _error(500, "Deepgram API key not configured")

    payload = await _json_body(request)
    text = payload.get("text")
    if not text:
        return _error(400, "Text is required")
    voice = payload.get("voice") or config.DEFAULT_VOICE

    try:
        r = await run_in_threadpool(
            requests.post,
            f"{config.DEEPGRAM_BASE}/v1/speak",
            params={"model": voice},
            headers={"Authorization": f"Token {config.DEEPGRAM_API_KEY}"},
            json={"text": text},
            timeout=config.REQUEST_TIMEOUT,
            stream=True,
        )
    except requests.RequestException as e:
        logger.error(f"TTS error: {e!r}")
        return _error(500, "Internal server error")

    if not r.ok:
        logger.error(f"Deepgram TTS error: {r.text[:300]}")
        return _error(r.status_code, "TTS failed")
    return StreamingResponse(r.iter_content(chunk_size=8192), media_type="audio/mpeg")
