import sys
from pathlib import Path

import pytest

# Load shared fixtures from tests._fixtures so pytest discovers them
pytest_plugins = [
    "tests._fixtures.fixtures",
]

# Ensure the project root is importable during pytest collection.
# This mirrors editable installs by adding the repository root to sys.path.
root = Path(__file__).resolve().parent.parent
root_path = str(root)
if root_path not in sys.path:
    sys.path.insert(0, root_path)


@pytest.fixture(autouse=True)
def isolate_pool_env(monkeypatch):
    """Keep developer FIXEDPOOL_* settings from leaking into tests."""
    for var in (
        "FIXEDPOOL_URL",
        "FIXEDPOOL_SIZE",
        "FIXEDPOOL_ACQUIRE_TIMEOUT_MS",
        "FIXEDPOOL_CONNECT_PARAMS",
        "FIXEDPOOL_LOG_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
    yield
