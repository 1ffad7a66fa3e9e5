from __future__ import annotations

import argparse
import sys
import tempfile
from pathlib import Path

from .config import configure_logging, get_settings, prepare_cookie_file
from .fetcher import SourceFetcher
from .models import DryRunReport
from .separator import Separator


def run_dry(url: str, out_dir: Path) -> DryRunReport:
    settings = get_settings()
    out_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="isolator-cookies-") as cookie_dir:
        cookie_file = prepare_cookie_file(settings.cookies_b64, Path(cookie_dir))
        source = SourceFetcher(settings, cookie_file=cookie_file).fetch(url, out_dir / "download")

    artifacts = Separator(settings).separate(source, out_dir / "separated")
    return DryRunReport(
        url=url,
        source=str(source),
        stems={artifact.kind: str(artifact.local_path) for artifact in artifacts},
    )


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Fetch and separate one URL locally, without upload or notification")
    parser.add_argument("--url", required=True, help="Remote audio/video URL")
    parser.add_argument("--out", default="processor/data/dry-run", help="Working directory for downloads and stems")

    args = parser.parse_args(argv)
    configure_logging(get_settings().log_level)

    out_dir = Path(args.out)
    report = run_dry(args.url, out_dir)
    rendered = report.model_dump_json(indent=2)
    (out_dir / "report.json").write_text(rendered, encoding="utf-8")
    sys.stdout.write(rendered + "\n")


if __name__ == "__main__":
    main()
