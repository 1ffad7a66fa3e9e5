import sys

import pytest

from processor.app.commands import run_command, stderr_tail
from processor.app.errors import CommandError


def test_successful_command_returns_output():
    result = run_command([sys.executable, "-c", "print('stems ready')"], 30)
    assert result.returncode == 0
    assert result.stdout.strip() == "stems ready"


def test_non_zero_exit_carries_stderr():
    script = "import sys; sys.stderr.write('ERROR: HTTP Error 404\\n'); sys.exit(3)"
    with pytest.raises(CommandError) as excinfo:
        run_command([sys.executable, "-c", script], 30)

    assert excinfo.value.returncode == 3
    assert "HTTP Error 404" in excinfo.value.stderr
    assert "failed with exit 3" in excinfo.value.message


def test_timeout_becomes_command_error_without_returncode():
    with pytest.raises(CommandError) as excinfo:
        run_command([sys.executable, "-c", "import time; time.sleep(10)"], 1)

    assert excinfo.value.returncode is None
    assert "timed out" in excinfo.value.message


def test_stderr_tail_keeps_last_non_blank_lines():
    assert stderr_tail("a\n\nb\nc\n  \n", 2) == "b\nc"
