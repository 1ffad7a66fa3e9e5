from __future__ import annotations

import base64
import binascii
import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(job_id)s] %(message)s"


def env_int(name: str, fallback: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return fallback
    try:
        parsed = int(raw)
    except ValueError:
        return fallback
    return parsed if parsed >= 0 else fallback


def env_str(name: str, fallback: str = "") -> str:
    return os.getenv(name, fallback).strip()


@dataclass(frozen=True)
class Settings:
    port: int
    processor_token: str
    slack_bot_token: str
    slack_api_url: str
    dropbox_token: str
    dropbox_folder: str
    cookies_b64: str
    fallback_client: str
    ytdlp_retries: int
    ytdlp_fragment_retries: int
    ytdlp_sleep_requests: int
    audio_format: str
    demucs_model: str
    scratch_root: Path
    fetch_timeout_sec: int
    separation_timeout_sec: int
    http_timeout_sec: int
    python_bin: str
    log_level: str


def load_settings() -> Settings:
    default_scratch = Path(tempfile.gettempdir()) / "isolator-jobs"
    return Settings(
        port=env_int("PORT", 10000),
        processor_token=env_str("PROCESSOR_TOKEN"),
        slack_bot_token=env_str("SLACK_BOT_TOKEN"),
        slack_api_url=env_str("SLACK_API_URL", "https://slack.com/api/chat.postMessage"),
        dropbox_token=env_str("DROPBOX_TOKEN"),
        dropbox_folder=env_str("DROPBOX_FOLDER", "/Isolator").rstrip("/"),
        cookies_b64=env_str("YTDLP_COOKIES_B64"),
        fallback_client=env_str("YTDLP_FALLBACK_CLIENT", "android") or "android",
        ytdlp_retries=env_int("YTDLP_RETRIES", 3),
        ytdlp_fragment_retries=env_int("YTDLP_FRAGMENT_RETRIES", 3),
        ytdlp_sleep_requests=env_int("YTDLP_SLEEP_REQUESTS", 1),
        audio_format=env_str("AUDIO_FORMAT", "m4a") or "m4a",
        demucs_model=env_str("DEMUCS_MODEL", "htdemucs_ft") or "htdemucs_ft",
        scratch_root=Path(env_str("SCRATCH_ROOT") or default_scratch).resolve(),
        fetch_timeout_sec=max(env_int("FETCH_TIMEOUT_SEC", 900), 30),
        separation_timeout_sec=max(env_int("SEPARATION_TIMEOUT_SEC", 1800), 30),
        http_timeout_sec=max(env_int("HTTP_TIMEOUT_SEC", 60), 1),
        python_bin=env_str("PYTHON_BIN") or sys.executable or "python3",
        log_level=env_str("LOG_LEVEL", "INFO").upper() or "INFO",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def reset_settings() -> None:
    get_settings.cache_clear()


class JobContextFilter(logging.Filter):
    """Gives every record a ``job_id`` so the shared format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "job_id"):
            record.job_id = "-"
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
    for handler in logging.getLogger().handlers:
        if not any(isinstance(existing, JobContextFilter) for existing in handler.filters):
            handler.addFilter(JobContextFilter())


def prepare_cookie_file(blob: str, directory: Path) -> Path | None:
    """Decode a base64 Netscape cookie jar into ``directory/cookies.txt``.

    Returns None when no blob is configured or it cannot be decoded; downloads
    then run without cookies.
    """
    if not blob:
        return None

    try:
        data = base64.b64decode("".join(blob.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Ignoring YTDLP_COOKIES_B64: not valid base64 (%s)", exc)
        return None

    if not data.strip():
        logger.warning("Ignoring YTDLP_COOKIES_B64: decoded cookie file is empty")
        return None

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "cookies.txt"
    path.write_bytes(data)
    path.chmod(0o600)
    logger.info("Loaded download cookies into %s", path)
    return path
