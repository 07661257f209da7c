"""Failures the conversation loop knows how to recover from (or not)."""


class VoiceLoopError(Exception):
    """Base class for every failure raised by a pipeline stage."""


class CaptureUnavailable(VoiceLoopError):
    """The microphone could not be opened (no device, no permission, no PortAudio)."""


class ProviderError(VoiceLoopError):
    """A relay call came back with a non-success status."""

    label = "Request failed"

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{self.label}: {status_code}")


class TranscriptionFailed(ProviderError):
    label = "STT failed"


class ResponseFailed(ProviderError):
    label = "AI request failed"


class SynthesisFailed(ProviderError):
    label = "TTS failed"


class PlaybackFailed(VoiceLoopError):
    """The synthesized audio could not be decoded or played."""
