from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from .config import Settings
from .errors import NotifyError
from .models import StemArtifact

logger = logging.getLogger(__name__)

SUCCESS_TEXT = "✅ Stems ready."
FAILURE_TEXT = "❌ Processor error: {summary}"


def success_message(vocals: StemArtifact, instrumental: StemArtifact) -> dict[str, Any]:
    return {
        "text": SUCCESS_TEXT,
        "blocks": [
            {"type": "section", "text": {"type": "mrkdwn", "text": "*✅ Stems ready* (vocals / instrumental)"}},
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*Vocals:*\n<{vocals.direct_link}|Download>"},
                    {"type": "mrkdwn", "text": f"*Instrumental:*\n<{instrumental.direct_link}|Download>"},
                ],
            },
        ],
    }


def failure_message(summary: str) -> dict[str, Any]:
    return {"text": FAILURE_TEXT.format(summary=summary)}


class SlackNotifier:
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def post(self, channel: str, thread_ts: str, message: dict[str, Any]) -> None:
        """Raises NotifyError; callers go through ``notify_best_effort``."""
        if not self.settings.slack_bot_token:
            logger.debug("SLACK_BOT_TOKEN not set, skipping notification")
            return

        try:
            response = self.session.post(
                self.settings.slack_api_url,
                json={"channel": channel, "thread_ts": thread_ts, **message},
                headers={
                    "Authorization": f"Bearer {self.settings.slack_bot_token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
                timeout=self.settings.http_timeout_sec,
            )
        except requests.RequestException as exc:
            raise NotifyError(f"Slack request failed: {exc}") from exc

        if not response.ok:
            raise NotifyError(f"Slack returned HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError:
            return
        if isinstance(payload, dict) and payload.get("ok") is False:
            raise NotifyError(f"Slack rejected message: {payload.get('error', 'unknown_error')}")


async def notify_best_effort(
    notifier: SlackNotifier,
    target: tuple[str, str] | None,
    message: dict[str, Any],
    job_id: str = "-",
) -> None:
    """Always resolves; a failed notification is only logged."""
    if target is None:
        return

    channel, thread_ts = target
    try:
        await asyncio.to_thread(notifier.post, channel, thread_ts, message)
    except Exception as exc:
        logger.warning("Notification to %s/%s failed: %s", channel, thread_ts, exc, extra={"job_id": job_id})
