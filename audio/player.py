import asyncio
import io
import logging

import soundfile as sf

from errors import PlaybackFailed

logger = logging.getLogger(__name__)


def _sounddevice():
    try:
        import sounddevice as sd
    except OSError as e:
        raise PlaybackFailed(f"PortAudio not available: {e}") from e
    return sd


class Player:
    """Plays one synthesized reply at a time on the output device."""

    def __init__(self, device=None, poll_interval: float = 0.05, backend=None):
        self._device = device
        self._poll_interval = poll_interval
        self._backend = backend
        self._signal = None
        self._interrupted = False

    @property
    def is_playing(self) -> bool:
        return self._signal is not None

    def _sd(self):
        if self._backend is None:
            self._backend = _sounddevice()
        return self._backend

    async def play(self, audio: bytes) -> bool:
        """Play ``audio`` and return True once it finished by itself.

        Returns False when ``interrupt()`` cut it short.
        """
        try:
            signal, sampling_rate = sf.read(io.BytesIO(audio))
        except Exception as e:
            raise PlaybackFailed(f"could not decode audio: {e}") from e

        sd = self._sd()
        self._signal = signal
        self._interrupted = False
        logger.info("Playing reply")
        try:
            try:
                sd.play(signal, sampling_rate, device=self._device)
            except Exception as e:
                raise PlaybackFailed(str(e)) from e
            while not self._interrupted:
                stream = sd.get_stream()
                if stream is None or not stream.active:
                    break
                await asyncio.sleep(self._poll_interval)
            return not self._interrupted
        except asyncio.CancelledError:
            sd.stop()
            raise
        finally:
            self._release()

    def interrupt(self) -> None:
        if self._signal is None:
            return
        self._interrupted = True
        try:
            self._sd().stop()
        finally:
            self._release()
        logger.info("Playback interrupted")

    def _release(self):
        # デコード済みバッファを手放す（何度呼んでもOK）
        self._signal = None
