"""Runtime configuration read from the environment (and an optional .env)."""

import logging
import os

from dotenv import load_dotenv

# Load .env if present (optional)
load_dotenv()

OPENAI_ENDPOINT = os.getenv("OPENAI_ENDPOINT", "https://api.openai.com/v1")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")

DATA_DIR = os.getenv("MONEYWISE_DATA_DIR", os.path.expanduser("~/.moneywise/data"))
DEFAULT_COMPANY = os.getenv("MONEYWISE_COMPANY", "")

KOKORO_ONNX_PATH = os.getenv("KOKORO_ONNX_PATH", "./resources/kokoro-v1.0.onnx")
KOKORO_VOICES_PATH = os.getenv("KOKORO_VOICES_PATH", "./resources/voices-v1.0.bin")
VOICE = os.getenv("MONEYWISE_VOICE", "pf_dora")
WHISPER_MODEL = os.getenv("WHISPER_MODEL", "base")

LOG_LEVEL = os.getenv("MONEYWISE_LOG_LEVEL", "INFO")

SPEECH_LOCALE = "pt-BR"
LOW_STOCK_THRESHOLD = 5


def setup_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
