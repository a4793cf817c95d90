import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from flowguard import logging_utils  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch):
    # Keep JSONL output out of the working tree and undo level overrides.
    monkeypatch.setattr(logging_utils, "LOG_FILE_PATH", None)
    monkeypatch.setattr(logging_utils, "LOG_THRESHOLD", logging_utils.LEVEL_ORDER["INFO"])
    yield
