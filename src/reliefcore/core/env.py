"""
`.env` loading.

Agent tokens, agent URLs and the backend URL usually live in a `.env` next to wherever
the API is started. `RELIEFCORE_ENV_FILE` points at a specific file instead.
Variables already present in the process environment always win.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load the `.env` file once; returns its path, or None when there is none."""
    explicit = os.getenv("RELIEFCORE_ENV_FILE")
    found = str(Path(explicit).expanduser()) if explicit else find_dotenv(usecwd=True)
    if not found or not Path(found).is_file():
        return None
    load_dotenv(dotenv_path=found, override=False)
    return Path(found).resolve()
