import asyncio
import io
import logging
from dataclasses import dataclass

import numpy as np
import soundfile as sf

from errors import CaptureUnavailable

logger = logging.getLogger(__name__)

# ブラウザのAnalyserNode相当の設定
FFT_SIZE = 2048
MIN_DB = -100.0
MAX_DB = -30.0


@dataclass(frozen=True)
class CaptureSettings:
    max_duration: float = 5.0  # 録音の上限（秒）
    silence_detection: bool = False
    silence_threshold: float = 30.0  # 0〜255スケールの平均レベル
    silence_duration: float = 10.0  # この秒数だけ無音が続いたら終了
    poll_interval: float = 0.1
    sample_rate: int = 16000
    channels: int = 1
    channel_strategy: str = "max"
    chunk_ms: int = 100
    device: int | str | None = None


@dataclass(frozen=True)
class RecordedSegment:
    data: bytes
    mime_type: str = "audio/wav"
    sample_rate: int = 16000

    @property
    def is_empty(self) -> bool:
        return not self.data


def mix_to_mono_int16(arr: np.ndarray, strategy: str = "max") -> np.ndarray:
    # 形状: (N,), (N,1), (N,2+) どれでもOKにする
    if arr.ndim == 1:
        return arr
    if arr.shape[1] == 1:
        return arr[:, 0]

    if strategy == "left":
        return arr[:, 0]
    if strategy == "right":
        return arr[:, 1]
    if strategy == "mean":
        return arr.astype(np.int32).mean(axis=1).astype(np.int16)

    # 既定: “最大振幅のch” をサンプル毎に選択（符号は保持）
    idx = np.abs(arr.astype(np.int32)).argmax(axis=1)
    return arr[np.arange(arr.shape[0]), idx]


def frequency_level(samples: np.ndarray, fft_size: int = FFT_SIZE) -> float:
    """Mean byte-scaled spectrum magnitude of the newest ``fft_size`` samples.

    Mirrors what a browser analyser reports from ``getByteFrequencyData``:
    Blackman-windowed FFT, magnitudes in dB clamped to [MIN_DB, MAX_DB] and
    mapped onto 0..255. Silence sits near 0, normal speech well above 30.
    """
    if samples.size == 0:
        return 0.0
    window = samples[-fft_size:].astype(np.float32) / 32768.0
    if window.size < fft_size:
        window = np.pad(window, (fft_size - window.size, 0))
    spectrum = np.abs(np.fft.rfft(window * np.blackman(fft_size)))[: fft_size // 2]
    spectrum /= fft_size
    db = 20.0 * np.log10(spectrum + 1e-12)
    scaled = (db - MIN_DB) * (255.0 / (MAX_DB - MIN_DB))
    return float(np.clip(scaled, 0, 255).mean())


def _default_stream_factory(**kwargs):
    # PortAudioが無い環境でもimport時点では落とさない
    try:
        import sounddevice as sd
    except OSError as e:
        raise CaptureUnavailable(f"PortAudio not available: {e}") from e
    try:
        return sd.InputStream(**kwargs)
    except sd.PortAudioError as e:
        raise CaptureUnavailable(str(e)) from e


class Recorder:
    """Records one segment from the microphone at a time.

    ``begin()`` opens the device and arms the auto-stop timer (plus the
    silence watcher when enabled), ``record()`` waits until the segment
    ends, ``end()`` closes the device and hands back the audio.
    """

    def __init__(self, settings: CaptureSettings | None = None, stream_factory=None):
        self.settings = settings or CaptureSettings()
        self._stream_factory = stream_factory or _default_stream_factory
        self._stream = None
        self._chunks: list[np.ndarray] = []
        self._done: asyncio.Event | None = None
        self._timers: list[asyncio.Task] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self.stop_reason: str | None = None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    async def begin(self):
        if self._stream is not None:
            return self._stream

        s = self.settings
        self._loop = asyncio.get_running_loop()
        self._chunks = []
        self._done = asyncio.Event()
        self.stop_reason = None

        stream = None
        try:
            stream = self._stream_factory(
                samplerate=s.sample_rate,
                channels=s.channels,
                dtype="int16",
                blocksize=int(s.sample_rate * s.chunk_ms / 1000),
                device=s.device,
                callback=self._callback,
            )
            stream.start()
        except CaptureUnavailable:
            raise
        except Exception as e:
            # 途中まで開いたストリームは必ず閉じる
            if stream is not None:
                stream.close()
            raise CaptureUnavailable(str(e)) from e

        self._stream = stream
        self._timers = [asyncio.create_task(self._auto_stop())]
        if s.silence_detection:
            self._timers.append(asyncio.create_task(self._watch_silence()))
        logger.info(
            f"[rec] capture started rate={s.sample_rate} max={s.max_duration}s "
            f"silence_detection={s.silence_detection}"
        )
        return stream

    def _callback(self, indata, frames, time_info, status):
        # PortAudioのスレッドから呼ばれるのでループ側に渡す
        if status:
            logger.warning(f"[rec] status={status}")
        if self._loop is None:
            return
        pcm16 = mix_to_mono_int16(np.asarray(indata), self.settings.channel_strategy).copy()
        self._loop.call_soon_threadsafe(self._chunks.append, pcm16)

    async def record(self) -> None:
        if self._done is None:
            raise RuntimeError("record() called before begin()")
        await self._done.wait()

    def stop(self, reason: str = "stopped") -> None:
        if self._done is None or self._done.is_set():
            return
        self.stop_reason = reason
        logger.info(f"[rec] segment end ({reason})")
        self._done.set()

    async def _auto_stop(self):
        await asyncio.sleep(self.settings.max_duration)
        self.stop("timeout")

    async def _watch_silence(self):
        s = self.settings
        loop = asyncio.get_running_loop()
        last_sound = loop.time()
        while True:
            await asyncio.sleep(s.poll_interval)
            level = frequency_level(self._recent_samples())
            now = loop.time()
            if level > s.silence_threshold:
                last_sound = now
            elif now - last_sound > s.silence_duration:
                self.stop("silence")
                return

    def _recent_samples(self) -> np.ndarray:
        tail = []
        count = 0
        for chunk in reversed(self._chunks):
            tail.append(chunk)
            count += len(chunk)
            if count >= FFT_SIZE:
                break
        if not tail:
            return np.zeros(0, dtype=np.int16)
        return np.concatenate(tail[::-1])

    def _cancel_timers(self):
        for task in self._timers:
            task.cancel()
        self._timers = []

    def end(self) -> RecordedSegment:
        """Release the device and return whatever was captured.

        Safe to call on any path (including after cancellation) and more
        than once; only the first call after ``begin()`` closes the stream.
        """
        self._cancel_timers()
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            finally:
                stream.close()
                logger.info("[rec] capture released")
        if self._done is not None and not self._done.is_set():
            self.stop_reason = self.stop_reason or "released"
            self._done.set()

        chunks, self._chunks = self._chunks, []
        rate = self.settings.sample_rate
        if not chunks:
            return RecordedSegment(b"", sample_rate=rate)
        audio = np.concatenate(chunks)
        if audio.size == 0:
            return RecordedSegment(b"", sample_rate=rate)

        buf = io.BytesIO()
        sf.write(buf, audio, rate, format="WAV", subtype="PCM_16")
        logger.info(f"[rec] segment samples={audio.size} ({audio.size * 1000 // rate}ms)")
        return RecordedSegment(buf.getvalue(), mime_type="audio/wav", sample_rate=rate)
