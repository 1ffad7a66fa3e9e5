import os
import sys
from pathlib import Path

# Ensure repo root on sys.path so ``processor.app`` imports from anywhere in the tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("PROCESSOR_TOKEN", "test-processor-token")
os.environ.setdefault("SLACK_BOT_TOKEN", "")
os.environ.setdefault("DROPBOX_TOKEN", "test-dropbox-token")
os.environ.setdefault("YTDLP_COOKIES_B64", "")

import dataclasses  # noqa: E402

import pytest  # noqa: E402

from processor.app.config import load_settings  # noqa: E402


@pytest.fixture
def settings(tmp_path):
    return dataclasses.replace(
        load_settings(),
        processor_token="test-processor-token",
        slack_bot_token="xoxb-test",
        dropbox_token="test-dropbox-token",
        dropbox_folder="/Isolator",
        scratch_root=tmp_path / "scratch",
        python_bin="python3",
        audio_format="m4a",
        demucs_model="htdemucs_ft",
        fallback_client="android",
    )
