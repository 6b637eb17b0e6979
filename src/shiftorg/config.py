"""Configuration helpers."""

from __future__ import annotations

import secrets
from logging import getLogger
from pathlib import Path

logger = getLogger(__name__)

KEY_FILE = ".key"


def load_key(path: str | Path = KEY_FILE) -> str:
    """Load the secret key from the .key file.

    If there is no .key file, create one with a random secret key.
    """
    key_file = Path(path)
    if key_file.exists():
        with key_file.open("r") as f:
            return f.read().strip()
    key = secrets.token_urlsafe(32)
    with key_file.open("w") as f:
        f.write(key)
    logger.info("New secret key written to %s", key_file)
    return key
