import os

import pytest

from config import reset_config


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    """Every test starts from default configuration with no LENS_ overrides."""
    for key in list(os.environ):
        if key.startswith("LENS_"):
            monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()
