import base64
import json
from pathlib import Path

import pytest

from processor.app import dry_run
from processor.app.config import reset_settings
from processor.app.models import StemArtifact


class StubFetcher:
    seen = []

    def __init__(self, settings, cookie_file=None):
        self.cookie_file = cookie_file

    def fetch(self, url, output_dir, job_id="-"):
        cookies = self.cookie_file.read_text() if self.cookie_file else None
        StubFetcher.seen.append((self.cookie_file, cookies))
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / "source.m4a"
        path.write_bytes(b"audio")
        return path


class StubSeparator:
    def __init__(self, settings):
        pass

    def separate(self, input_file, output_root, job_id="-"):
        out_dir = output_root / "htdemucs_ft" / input_file.stem
        return [
            StemArtifact(kind="vocals", local_path=out_dir / "vocals.wav"),
            StemArtifact(kind="instrumental", local_path=out_dir / "no_vocals.wav"),
        ]


def test_dry_run_writes_report(monkeypatch, tmp_path, capsys):
    monkeypatch.setattr(dry_run, "SourceFetcher", StubFetcher)
    monkeypatch.setattr(dry_run, "Separator", StubSeparator)

    dry_run.main(["--url", "https://example/video123", "--out", str(tmp_path)])

    report = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert report["url"] == "https://example/video123"
    assert Path(report["source"]) == tmp_path / "download" / "source.m4a"
    assert set(report["stems"]) == {"vocals", "instrumental"}
    assert json.loads(capsys.readouterr().out) == report


@pytest.fixture
def cookie_env(monkeypatch):
    cookies = "# Netscape HTTP Cookie File\n"
    monkeypatch.setenv("YTDLP_COOKIES_B64", base64.b64encode(cookies.encode()).decode())
    reset_settings()
    StubFetcher.seen = []
    yield cookies
    monkeypatch.undo()
    reset_settings()


def test_dry_run_removes_decoded_cookies(monkeypatch, tmp_path, cookie_env):
    monkeypatch.setattr(dry_run, "SourceFetcher", StubFetcher)
    monkeypatch.setattr(dry_run, "Separator", StubSeparator)

    dry_run.run_dry("https://example/video123", tmp_path)

    cookie_file, contents = StubFetcher.seen[0]
    assert contents == cookie_env
    assert not cookie_file.exists()
    assert not list(tmp_path.rglob("cookies.txt"))
