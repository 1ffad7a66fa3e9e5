from __future__ import annotations

import logging
from pathlib import Path

import soundfile as sf

from .commands import run_command, stderr_tail
from .config import Settings
from .errors import CommandError, SeparationError
from .models import StemArtifact

logger = logging.getLogger(__name__)

# demucs --two-stems=vocals writes <root>/<model>/<input stem>/{vocals,no_vocals}.wav
STEM_FILES = {
    "vocals": "vocals.wav",
    "instrumental": "no_vocals.wav",
}


def stem_output_dir(output_root: Path, model: str, input_file: Path) -> Path:
    return output_root / model / input_file.stem


def assert_readable_audio(path: Path) -> None:
    if not path.exists() or path.stat().st_size <= 0:
        raise SeparationError(f"Separation output missing or empty: {path.name}")
    try:
        info = sf.info(str(path))
    except RuntimeError as exc:
        raise SeparationError(f"Separation output is not readable audio: {path.name}") from exc
    if info.frames <= 0:
        raise SeparationError(f"Separation output has no audio frames: {path.name}")


class Separator:
    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def model(self) -> str:
        return self.settings.demucs_model

    def build_command(self, input_file: Path, output_root: Path) -> list[str]:
        return [
            self.settings.python_bin,
            "-m",
            "demucs",
            "--two-stems=vocals",
            "-n",
            self.model,
            "-o",
            str(output_root),
            str(input_file),
        ]

    def separate(self, input_file: Path, output_root: Path, job_id: str = "-") -> list[StemArtifact]:
        output_root.mkdir(parents=True, exist_ok=True)
        try:
            run_command(self.build_command(input_file, output_root), self.settings.separation_timeout_sec, job_id)
        except CommandError as exc:
            raise SeparationError(f"{exc.message}: {stderr_tail(exc.stderr, 2)}".rstrip(": ")) from exc

        out_dir = stem_output_dir(output_root, self.model, input_file)
        artifacts = []
        for kind, filename in STEM_FILES.items():
            path = out_dir / filename
            assert_readable_audio(path)
            artifacts.append(StemArtifact(kind=kind, local_path=path))

        logger.info("Separated %s into %s", input_file.name, out_dir, extra={"job_id": job_id})
        return artifacts
