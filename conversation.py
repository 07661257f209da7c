import argparse
import asyncio
import logging

import config
from audio.devices import list_audio_devices, pick_input_device
from errors import CaptureUnavailable
from logging_config import setup_logging
from pipeline.history import Turn
from pipeline.session import StatusEvent, create_agent_session, create_meeting_session

logger = logging.getLogger(__name__)


def _print_status(event: StatusEvent):
    print(f"[{event.phase.value}] {event.label}")


def _print_turn(turn: Turn):
    print(f"{turn.speaker}: {turn.text}")


def _select_input_device():
    # 入力デバイス未指定なら希望リスト順に開けるものを探す
    if config.INPUT_DEVICE is not None:
        return
    try:
        picked = pick_input_device(config.INPUT_CHANNELS, config.PREFER_INPUT, config.WANTED_RATES)
    except CaptureUnavailable as e:
        logger.warning(f"input device auto-pick failed, using system default: {e}")
        return
    config.INPUT_DEVICE = picked["device"]
    config.INPUT_CHANNELS = picked["channels"]
    config.SAMPLE_RATE = picked["samplerate"]


def build_session(meeting: bool):
    _select_input_device()
    hooks = dict(on_status=_print_status, on_turn=_print_turn)
    if meeting:
        return create_meeting_session(config.meeting_settings(), **hooks)
    return create_agent_session(config.agent_settings(), **hooks)


async def run(meeting: bool = False):
    session = build_session(meeting)
    logger.info("conversation loop start (Ctrl+C to exit)")
    await session.start()
    try:
        await session.wait_idle()
    finally:
        await session.end_session()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Talk to a voice agent or a meeting room.")
    parser.add_argument("--meeting", action="store_true", help="talk to the meeting room personas")
    parser.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    args = parser.parse_args(argv)

    config.load_config()
    setup_logging()

    if args.list_devices:
        for d in list_audio_devices():
            print(f"{d['index']:>3} in={d['max_input']} out={d['max_output']} {d['name']}")
        return 0

    try:
        asyncio.run(run(meeting=args.meeting))
    except KeyboardInterrupt:
        logger.info("Ctrl+C received, exiting...")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
