from dataclasses import dataclass
from dotenv import load_dotenv
from pathlib import Path
import os

RELAY_BASE = "http://localhost:3000"
REQUEST_TIMEOUT = 60
TIMEOUT = 2.0
PORT = 3000

# リレー側で保持するプロバイダの認証情報
DEEPGRAM_API_KEY = None
OPENAI_API_KEY = None
DEEPGRAM_BASE = "https://api.deepgram.com"
OPENAI_BASE = "https://api.openai.com"
DEEPGRAM_STT_MODEL = "nova-2"
OPENAI_MODEL = "gpt-4o"
OPENAI_MAX_TOKENS = 1024
RELAY_SYSTEM_PROMPT = "You are a helpful voice assistant."

DEFAULT_VOICE = "aura-asteria-en"
AGENT_VOICE = DEFAULT_VOICE
MEETING_VOICE = DEFAULT_VOICE
ALL_RESPOND = True
DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful voice assistant. Keep your responses concise and "
    "conversational since they will be spoken aloud. Aim for 2-3 sentences "
    "unless the user asks for more detail."
)
SYSTEM_PROMPT = DEFAULT_SYSTEM_PROMPT

INPUT_DEVICE = None
OUTPUT_DEVICE = None
INPUT_CHANNELS = 1
CHANNEL_STRATEGY = "max"  # "max" / "mean" / "left" / "right"
SAMPLE_RATE = 16000
PREFER_INPUT = ["USB Audio", "pulse", "pipewire", "default"]
WANTED_RATES = [16000, 48000]

LOG_PATH = "./app.log"
LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class AgentSettings:
    voice_id: str
    system_prompt: str


@dataclass(frozen=True)
class MeetingSettings:
    base_voice_id: str
    all_respond: bool


def _device(value):
    # 数字ならインデックス、それ以外は名前の部分一致としてsounddeviceに渡す
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return value


def load_config():
    global RELAY_BASE, REQUEST_TIMEOUT, TIMEOUT, PORT
    global DEEPGRAM_API_KEY, OPENAI_API_KEY, DEEPGRAM_BASE, OPENAI_BASE
    global DEEPGRAM_STT_MODEL, OPENAI_MODEL, OPENAI_MAX_TOKENS
    global AGENT_VOICE, MEETING_VOICE, ALL_RESPOND, SYSTEM_PROMPT
    global INPUT_DEVICE, OUTPUT_DEVICE, INPUT_CHANNELS, CHANNEL_STRATEGY
    global SAMPLE_RATE, PREFER_INPUT, WANTED_RATES, LOG_PATH, LOG_LEVEL
    load_dotenv()
    BASE_DIR = Path(__file__).resolve().parent

    RELAY_BASE = os.getenv("RELAY_BASE", RELAY_BASE).rstrip("/")
    REQUEST_TIMEOUT = int(os.getenv("REQUEST_TIMEOUT", str(REQUEST_TIMEOUT)))
    TIMEOUT = float(os.getenv("TIMEOUT", str(TIMEOUT)))
    PORT = int(os.getenv("PORT", str(PORT)))

    DEEPGRAM_API_KEY = os.getenv("DEEPGRAM_API_KEY")
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    DEEPGRAM_BASE = os.getenv("DEEPGRAM_BASE", DEEPGRAM_BASE).rstrip("/")
    OPENAI_BASE = os.getenv("OPENAI_BASE", OPENAI_BASE).rstrip("/")
    DEEPGRAM_STT_MODEL = os.getenv("DEEPGRAM_STT_MODEL", DEEPGRAM_STT_MODEL)
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", OPENAI_MODEL)
    OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", str(OPENAI_MAX_TOKENS)))

    AGENT_VOICE = os.getenv("AGENT_VOICE", DEFAULT_VOICE)
    MEETING_VOICE = os.getenv("MEETING_VOICE", DEFAULT_VOICE)
    ALL_RESPOND = os.getenv("ALL_RESPOND", "true").lower() != "false"

    SYSTEM_PROMPT_PATH = os.getenv(
        "SYSTEM_PROMPT_PATH",
        str(BASE_DIR / "SYSTEM_PROMPT.md"),
    )
    try:
        with open(SYSTEM_PROMPT_PATH, "r", encoding="utf-8") as f:
            SYSTEM_PROMPT = f.read().strip() or DEFAULT_SYSTEM_PROMPT
    except FileNotFoundError:
        SYSTEM_PROMPT = DEFAULT_SYSTEM_PROMPT

    INPUT_DEVICE = _device(os.getenv("INPUT_DEVICE"))
    OUTPUT_DEVICE = _device(os.getenv("OUTPUT_DEVICE"))
    INPUT_CHANNELS = int(os.getenv("INPUT_CHANNELS", str(INPUT_CHANNELS)))
    CHANNEL_STRATEGY = os.getenv("CHANNEL_STRATEGY", CHANNEL_STRATEGY)
    SAMPLE_RATE = int(os.getenv("SAMPLE_RATE", str(SAMPLE_RATE)))
    PREFER_INPUT = os.getenv("PREFER_INPUT", ",".join(PREFER_INPUT)).split(",")
    WANTED_RATES = [
        int(x) for x in os.getenv("WANTED_RATES", ",".join(map(str, WANTED_RATES))).split(",")
    ]

    LOG_PATH = os.getenv("LOG_PATH", LOG_PATH)
    LOG_LEVEL = os.getenv("LOG_LEVEL", LOG_LEVEL).upper()


def agent_settings() -> AgentSettings:
    return AgentSettings(voice_id=AGENT_VOICE, system_prompt=SYSTEM_PROMPT)


def meeting_settings() -> MeetingSettings:
    return MeetingSettings(base_voice_id=MEETING_VOICE, all_respond=ALL_RESPOND)
