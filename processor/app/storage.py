from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

from .config import Settings
from .errors import PublishError
from .models import StemArtifact

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://content.dropboxapi.com/2/files/upload"
CREATE_LINK_URL = "https://api.dropboxapi.com/2/sharing/create_shared_link_with_settings"
LIST_LINKS_URL = "https://api.dropboxapi.com/2/sharing/list_shared_links"
LINK_EXISTS_TAG = "shared_link_already_exists"
DEFAULT_TITLE = "split"
ILLEGAL_NAME_CHARS = re.compile(r'[\\/:*?"<>|]+')


def safe_name(title: str | None) -> str:
    cleaned = ILLEGAL_NAME_CHARS.sub(" ", title or "")
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    return cleaned or DEFAULT_TITLE


def name_stamp(moment: datetime) -> str:
    iso = moment.isoformat(timespec="milliseconds")
    if iso.endswith("+00:00"):
        iso = iso[:-6] + "Z"
    return iso.replace(":", "-").replace(".", "-")


def remote_path(folder: str, title: str | None, stamp: str, role: str) -> str:
    return f"{folder}/{safe_name(title)}_{stamp}_{role}.wav"


def direct_download_url(url: str) -> str:
    """Turn a browser-preview share link (``dl=0``) into a direct download."""
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "dl"]
    query.append(("dl", "1"))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def _error_tag(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get(".tag"), str):
        return error[".tag"]
    summary = payload.get("error_summary")
    if isinstance(summary, str):
        return summary.split("/", 1)[0]
    return None


def _json_or_text(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text[:500]


class DropboxPublisher:
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.settings = settings
        self.session = session or requests.Session()

    def _headers(self, **extra: str) -> dict[str, str]:
        if not self.settings.dropbox_token:
            raise PublishError("DROPBOX_TOKEN missing")
        return {"Authorization": f"Bearer {self.settings.dropbox_token}", **extra}

    def _post_json(self, url: str, body: dict[str, Any]) -> requests.Response:
        try:
            return self.session.post(
                url,
                data=json.dumps(body),
                headers=self._headers(**{"Content-Type": "application/json"}),
                timeout=self.settings.http_timeout_sec,
            )
        except requests.RequestException as exc:
            raise PublishError(f"Dropbox request failed: {exc}") from exc

    def upload(self, local_path: Path, remote: str) -> dict[str, Any]:
        arg = {
            "path": remote,
            "mode": "overwrite",
            "autorename": False,
            "mute": True,
            "strict_conflict": False,
        }
        headers = self._headers(**{
            "Dropbox-API-Arg": json.dumps(arg),
            "Content-Type": "application/octet-stream",
        })
        try:
            with local_path.open("rb") as handle:
                response = self.session.post(
                    UPLOAD_URL,
                    data=handle,
                    headers=headers,
                    timeout=self.settings.http_timeout_sec,
                )
        except (OSError, requests.RequestException) as exc:
            raise PublishError(f"Dropbox upload failed for {remote}: {exc}") from exc

        payload = _json_or_text(response)
        if not response.ok:
            raise PublishError(f"Dropbox upload failed for {remote}: {payload}")
        return payload

    def shared_link(self, remote: str) -> str:
        """Create a public link for ``remote`` or reuse the one an earlier run made."""
        response = self._post_json(
            CREATE_LINK_URL,
            {"path": remote, "settings": {"requested_visibility": "public"}},
        )
        payload = _json_or_text(response)
        if response.ok and isinstance(payload, dict) and payload.get("url"):
            return direct_download_url(payload["url"])

        if _error_tag(payload) != LINK_EXISTS_TAG:
            raise PublishError(f"Dropbox link failed for {remote}: {payload}")

        logger.info("Shared link already exists for %s, listing existing links", remote)
        listed = self._post_json(LIST_LINKS_URL, {"path": remote, "direct_only": True})
        listing = _json_or_text(listed)
        if not listed.ok or not isinstance(listing, dict):
            raise PublishError(f"Dropbox link listing failed for {remote}: {listing}")

        links = listing.get("links") or []
        url = links[0].get("url") if links and isinstance(links[0], dict) else None
        if not url:
            raise PublishError(f"No existing link for {remote}")
        return direct_download_url(url)

    def publish(
        self,
        artifact: StemArtifact,
        title: str | None,
        stamp: str,
        job_id: str = "-",
    ) -> StemArtifact:
        remote = remote_path(self.settings.dropbox_folder, title, stamp, artifact.kind)
        self.upload(artifact.local_path, remote)
        artifact.remote_name = remote
        artifact.direct_link = self.shared_link(remote)
        logger.info("Published %s to %s", artifact.kind, remote, extra={"job_id": job_id})
        return artifact
