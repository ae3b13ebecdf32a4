import logging
import os as _os
import sys

import pytest

# Ensure project root is importable when the package is not installed.
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from nodekeeper import db  # noqa: E402


@pytest.fixture(autouse=True)
def audit_db(tmp_path):
    """Every test gets its own audit trail database."""
    path = str(tmp_path / "events.db")
    db.configure(path)
    return path


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger("nodekeeper")
    logger.handlers[:] = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
