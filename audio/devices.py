import logging

from errors import CaptureUnavailable

logger = logging.getLogger(__name__)


def _sounddevice():
    try:
        import sounddevice as sd
    except OSError as e:
        raise CaptureUnavailable(f"PortAudio not available: {e}") from e
    return sd


def list_audio_devices(sd=None) -> list[dict]:
    sd = sd or _sounddevice()
    items = []
    for i, d in enumerate(sd.query_devices()):
        items.append({
            "index": i,
            "name": d["name"],
            "max_input": d.get("max_input_channels", 0),
            "max_output": d.get("max_output_channels", 0),
        })
    return items


def pick_input_device(req_ch: int, prefer: list[str], rates: list[int], sd=None) -> dict:
    """Pick the first input device (by preference order) that opens with one of ``rates``."""
    sd = sd or _sounddevice()
    devs = sd.query_devices()
    cand = [(i, d) for i, d in enumerate(devs) if (d.get("max_input_channels", 0) or 0) >= 1]

    def score(name: str) -> int:
        for k, key in enumerate(prefer):
            if key and key in name:
                return k
        return len(prefer)
    cand.sort(key=lambda x: score(x[1]["name"]))

    for idx, d in cand:
        max_in = d.get("max_input_channels", 1) or 1
        for ch in (req_ch, 1):
            use_ch = min(ch, max_in)
            if use_ch < 1:
                continue
            for rate in rates:
                try:
                    sd.check_input_settings(device=idx, samplerate=rate, channels=use_ch, dtype="int16")
                except Exception:
                    continue
                picked = {"device": idx, "name": d["name"], "channels": use_ch,
                          "samplerate": rate, "max_in": max_in}
                logger.info(f"[dev] picked input {picked}")
                return picked
    raise CaptureUnavailable("no input device opens with the wanted settings")
