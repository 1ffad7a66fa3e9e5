from __future__ import annotations

import logging
import subprocess
from typing import Sequence

from .errors import CommandError

logger = logging.getLogger(__name__)


def stderr_tail(text: str, lines: int = 8) -> str:
    kept = [line for line in (text or "").strip().splitlines() if line.strip()]
    return "\n".join(kept[-lines:])


def run_command(
    argv: Sequence[str],
    timeout_sec: int,
    job_id: str = "-",
) -> subprocess.CompletedProcess[str]:
    """Run an external tool to completion; blocking, callers wrap it in a thread."""
    command = [str(part) for part in argv]
    logger.info("Running %s", " ".join(command), extra={"job_id": job_id})

    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False, timeout=timeout_sec)
    except subprocess.TimeoutExpired as exc:
        stderr = exc.stderr.decode("utf-8", "replace") if isinstance(exc.stderr, bytes) else (exc.stderr or "")
        logger.error("%s timed out after %ss", command[0], timeout_sec, extra={"job_id": job_id})
        raise CommandError(command, None, stderr) from exc

    if result.returncode != 0:
        logger.error(
            "%s exited %s: %s",
            command[0],
            result.returncode,
            stderr_tail(result.stderr or result.stdout),
            extra={"job_id": job_id},
        )
        raise CommandError(command, result.returncode, result.stderr or result.stdout or "")

    logger.info("%s finished", command[0], extra={"job_id": job_id})
    return result
