import logging
import os
from dotenv import load_dotenv

load_dotenv()


def _list(name):
    return [v.strip() for v in os.getenv(name, "").split(",") if v.strip()]


def _seconds(name, default=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _flag(name):
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


# Remote orchestration services; one is picked at random per run
PROVIDER_API_URLS = _list("PROVIDER_API_URLS")
# A local capability (e.g. a browser extension) is handling scraping itself
LOCAL_OVERRIDE = _flag("LOCAL_OVERRIDE")

MIRROR_API_URL = os.getenv("MIRROR_API_URL", "")
MIRROR_API_KEY = os.getenv("MIRROR_API_KEY")

SOURCE_ORDER = _list("SOURCE_ORDER")

# Transport-level timeout of the aiohttp fetcher
FETCH_TIMEOUT = _seconds("FETCH_TIMEOUT", 10)
# Engine-level limits; unset means a hung attempt waits on the transport alone
SOURCE_TIMEOUT = _seconds("SOURCE_TIMEOUT")
EMBED_TIMEOUT = _seconds("EMBED_TIMEOUT")
REMOTE_READ_TIMEOUT = _seconds("REMOTE_READ_TIMEOUT")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "sse_starlette.sse")


def configure_logging(level=None):
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
