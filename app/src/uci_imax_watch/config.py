from dataclasses import dataclass
from pathlib import Path
from dotenv import load_dotenv
import logging
import os

from .extractor import DEFAULT_END_MARKER, DEFAULT_START_MARKER

load_dotenv()

DEFAULT_NOTIFY_TEXT = (
    "È stata aggiornata la programmazione dei film UCI Cinemas nelle sale IMAX! 🎥 🍿\n\n{url}"
)

@dataclass(frozen=True)
class Config:
    page_url: str
    start_marker: str
    end_marker: str
    user_agent: str
    fetch_timeout_ms: int

    out_dir: Path
    storage_backend: str
    storage_dir: Path
    redis_url: str | None
    snapshot_prefix: str
    diff_prefix: str
    retention_seconds: int

    telegram_bot_token: str | None
    telegram_chat_id: str | None
    telegram_timeout_seconds: float
    notify_text: str

    run_interval_seconds: int

    @property
    def notification_message(self) -> str:
        return self.notify_text.replace("{url}", self.page_url)

def load_config() -> Config:
    logger = logging.getLogger(__name__)
    out_dir = Path(os.getenv("OUT_DIR", "./out"))
    out_dir.mkdir(parents=True, exist_ok=True)

    def _int(name: str, default: int, minimum: int = 0) -> int:
        raw = os.getenv(name, "").strip()
        if raw == "":
            return default
        try:
            value = int(raw)
        except ValueError:
            logger.warning("invalid %s=%s, using default=%s", name, raw, default)
            return default
        if value < minimum:
            logger.warning("invalid %s=%s, using default=%s", name, raw, default)
            return default
        return value

    def _float(name: str, default: float) -> float:
        raw = os.getenv(name, "").strip()
        if raw == "":
            return default
        try:
            value = float(raw)
        except ValueError:
            value = 0.0
        if value <= 0:
            logger.warning("invalid %s=%s, using default=%s", name, raw, default)
            return default
        return value

    def _prefix(name: str, default: str) -> str:
        return os.getenv(name, default).strip().strip("/") or default

    storage_backend = os.getenv("STORAGE_BACKEND", "local").strip().lower()
    if storage_backend not in ("local", "redis"):
        logger.warning("invalid STORAGE_BACKEND=%s, using default=local", storage_backend)
        storage_backend = "local"

    storage_dir = Path(os.getenv("STORAGE_DIR", "").strip() or out_dir / "blobs")

    return Config(
        page_url=os.getenv("PAGE_URL", "https://imax.ucicinemas.it/").strip(),
        start_marker=os.getenv("START_MARKER") or DEFAULT_START_MARKER,
        end_marker=os.getenv("END_MARKER") or DEFAULT_END_MARKER,
        user_agent=os.getenv("USER_AGENT", "Mozilla/5.0 uci-imax-watch"),
        fetch_timeout_ms=_int("FETCH_TIMEOUT_MS", 60000, minimum=1),

        out_dir=out_dir,
        storage_backend=storage_backend,
        storage_dir=storage_dir,
        redis_url=os.getenv("REDIS_URL", "").strip() or None,
        snapshot_prefix=_prefix("SNAPSHOT_PREFIX", "scraped-data"),
        diff_prefix=_prefix("DIFF_PREFIX", "differences-data"),
        retention_seconds=_int("RETENTION_SECONDS", 3600, minimum=1),

        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", "").strip() or None,
        telegram_chat_id=os.getenv("TELEGRAM_CHANNEL_CHAT_ID", "").strip() or None,
        telegram_timeout_seconds=_float("TELEGRAM_TIMEOUT_SECONDS", 10.0),
        notify_text=os.getenv("NOTIFY_TEXT") or DEFAULT_NOTIFY_TEXT,

        run_interval_seconds=_int("RUN_INTERVAL_SECONDS", 0),
    )
