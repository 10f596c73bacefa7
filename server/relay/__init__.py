"""Assistant relay: answers one message per request through an OpenAI assistant run.

Importing the package loads ``server/.env`` and then ``server/.env.local`` so
``OPENAI_API_KEY``, ``ASSISTANT_ID`` and the ``RUN_*`` polling knobs are in the
environment before :mod:`relay.config` reads them.
"""
from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

__version__ = "0.1.0"

_SERVER_DIR = Path(__file__).resolve().parent.parent
ENV_FILES = (_SERVER_DIR / ".env", _SERVER_DIR / ".env.local")

for _env_file in ENV_FILES:
    # Later files win, so .env.local overrides credentials from .env.
    load_dotenv(_env_file, override=_env_file.name == ".env.local")
