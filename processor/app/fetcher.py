from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path

from .commands import run_command, stderr_tail
from .config import Settings
from .errors import CommandError, FetchError

logger = logging.getLogger(__name__)

SOURCE_STEM = "source"


class FailureCategory(str, Enum):
    BOT_CHALLENGE = "bot_challenge"
    ACCESS_GATE = "access_gate"
    OTHER = "other"


BOT_CHALLENGE_SIGNATURES = (
    "confirm you're not a bot",
    "confirm you’re not a bot",
    "confirm that you're not a bot",
    "not a robot",
    "captcha",
    "unusual traffic",
)

ACCESS_GATE_SIGNATURES = (
    "sign in to confirm your age",
    "confirm your age",
    "age-restricted",
    "age restricted",
    "inappropriate for some users",
    "before you continue",
    "consent.youtube.com",
)

FALLBACK_CATEGORIES = frozenset({FailureCategory.BOT_CHALLENGE, FailureCategory.ACCESS_GATE})


def classify_download_failure(diagnostic: str) -> FailureCategory:
    text = (diagnostic or "").lower()
    if any(signature in text for signature in BOT_CHALLENGE_SIGNATURES):
        return FailureCategory.BOT_CHALLENGE
    if any(signature in text for signature in ACCESS_GATE_SIGNATURES):
        return FailureCategory.ACCESS_GATE
    return FailureCategory.OTHER


class SourceFetcher:
    def __init__(self, settings: Settings, cookie_file: Path | None = None):
        self.settings = settings
        self.cookie_file = cookie_file

    def build_command(self, url: str, output_dir: Path, client: str | None = None) -> list[str]:
        settings = self.settings
        command = [
            settings.python_bin,
            "-m",
            "yt_dlp",
            "-f",
            "bestaudio/best",
            "-x",
            "--audio-format",
            settings.audio_format,
            "--no-playlist",
            "--retries",
            str(settings.ytdlp_retries),
            "--fragment-retries",
            str(settings.ytdlp_fragment_retries),
            "--sleep-requests",
            str(settings.ytdlp_sleep_requests),
        ]
        if self.cookie_file is not None:
            command += ["--cookies", str(self.cookie_file)]
        if client:
            command += ["--extractor-args", f"youtube:player_client={client}"]
        command += ["-o", str(output_dir / f"{SOURCE_STEM}.%(ext)s"), url]
        return command

    def fetch(self, url: str, output_dir: Path, job_id: str = "-") -> Path:
        """Download the best audio track of ``url`` into ``output_dir``.

        One fallback attempt with an alternate player client is made when the
        first failure looks like an anti-automation block; anything else is
        raised as is.
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / f"{SOURCE_STEM}.{self.settings.audio_format}"

        try:
            run_command(self.build_command(url, output_dir), self.settings.fetch_timeout_sec, job_id)
        except CommandError as exc:
            category = classify_download_failure(exc.stderr)
            if category not in FALLBACK_CATEGORIES:
                raise FetchError(f"Download failed: {stderr_tail(exc.stderr, 2) or exc.message}", category) from exc

            client = self.settings.fallback_client
            logger.warning(
                "Download blocked (%s), retrying with player client %s",
                category.value,
                client,
                extra={"job_id": job_id},
            )
            try:
                run_command(
                    self.build_command(url, output_dir, client=client),
                    self.settings.fetch_timeout_sec,
                    job_id,
                )
            except CommandError as retry_exc:
                raise FetchError(
                    f"Download blocked ({category.value}) and fallback failed: "
                    f"{stderr_tail(retry_exc.stderr, 2) or retry_exc.message}",
                    classify_download_failure(retry_exc.stderr),
                ) from retry_exc

        if not target.exists() or target.stat().st_size <= 0:
            raise FetchError(f"Downloaded source audio is missing or empty: {target.name}")

        logger.info("Downloaded %s", target, extra={"job_id": job_id})
        return target
