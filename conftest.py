"""Root conftest: export .env.test before portal_chat.config is imported."""
from __future__ import annotations

import os
from pathlib import Path

_ENV_FILE = Path(__file__).resolve().parent / ".env.test"


def _load_env_file(path: Path) -> None:
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        # values already exported by CI win
        os.environ.setdefault(key.strip(), value.strip())


if _ENV_FILE.exists():
    _load_env_file(_ENV_FILE)
