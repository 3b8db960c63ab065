import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from relay import settings  # noqa: E402


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    """Point the config loader at a temp file; call it with the JSON to write."""
    path = tmp_path / "settings.json"
    monkeypatch.setattr(settings, "SETTINGS_FILE", str(path))

    def write(data):
        text = data if isinstance(data, str) else json.dumps(data)
        path.write_text(text, encoding="utf-8")
        return path

    return write
