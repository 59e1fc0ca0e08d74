"""Configuration loading utilities for the chat server.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable CHAT_SERVER_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``CHAT_SERVER__`` (e.g., CHAT_SERVER__STORAGE__BACKEND=mongo).

Secrets are never read from YAML: the provider API key and the database
connection string come from the environment (see :func:`resolve_api_key` and
:func:`resolve_database_uri`).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlsplit

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    "server": {"cors_origins": ["*"]},
    "storage": {"backend": "memory", "collection": "messages"},
    "provider": {
        "chat_model": "gpt-4o",
        "max_tokens": 1000,
        "temperature": 0.7,
        "transcription_model": "whisper-1",
        "speech_model": "tts-1",
        "voice": "alloy",
    },
    "chat": {"max_message_chars": 1000},
}

DEFAULT_DATABASE_URI = "mongodb://localhost:27017/ai-chatbot"
RELATIONAL_SCHEMES = ("postgres", "postgresql", "mysql", "mariadb", "sqlite", "mssql", "oracle")


def _apply_env_overrides(cfg: Dict[str, Any], env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix CHAT_SERVER__."""
    prefix = "CHAT_SERVER__"
    env = os.environ if env is None else env
    for key, value in env.items():
        if not key.startswith(prefix):
            continue
        # e.g., CHAT_SERVER__PROVIDER__VOICE=nova -> cfg["provider"]["voice"]
        parts = key[len(prefix):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        leaf = parts[-1]
        if value.lower() in {"true", "false"}:
            sub[leaf] = value.lower() == "true"
        else:
            try:
                if "." in value:
                    sub[leaf] = float(value)
                else:
                    sub[leaf] = int(value)
            except ValueError:
                sub[leaf] = value
    return cfg


def _merge(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in extra.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: str | None = None, env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Load YAML configuration for the chat server.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``CHAT_SERVER_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.
    env : Mapping[str, str] | None
        Environment to read from; defaults to ``os.environ``.

    Returns
    -------
    Dict[str, Any]
        File values layered over :data:`DEFAULT_CONFIG`, with environment
        overrides applied.
    """
    env = os.environ if env is None else env
    if path is None:
        path = env.get("CHAT_SERVER_CONFIG", "config/default.yaml")

    cfg = copy.deepcopy(DEFAULT_CONFIG)
    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(cfg, env)

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(loaded, dict):
        raise ConfigError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_merge(cfg, loaded), env)


def resolve_api_key(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Provider API key: ``OPENAI_API_KEY``, then ``OPENAI_API_KEY_ENV_VAR``."""
    env = os.environ if env is None else env
    return env.get("OPENAI_API_KEY") or env.get("OPENAI_API_KEY_ENV_VAR") or None


def is_relational_uri(uri: str) -> bool:
    scheme = urlsplit(uri).scheme.lower()
    # e.g. "postgresql+psycopg2"
    base = scheme.split("+", 1)[0]
    return base in RELATIONAL_SCHEMES


def resolve_database_uri(env: Optional[Mapping[str, str]] = None) -> str:
    """MongoDB connection string.

    Order: ``MONGODB_URI``, then ``DATABASE_URL`` unless it points at a
    relational database (hosting platforms often set it for Postgres), then
    :data:`DEFAULT_DATABASE_URI`.
    """
    env = os.environ if env is None else env

    mongo_uri = env.get("MONGODB_URI")
    if mongo_uri:
        if is_relational_uri(mongo_uri):
            raise ConfigError("MONGODB_URI points at a relational database, expected a mongodb:// URI.")
        return mongo_uri

    database_url = env.get("DATABASE_URL")
    if database_url:
        if is_relational_uri(database_url):
            logger.warning("Ignoring relational DATABASE_URL for the message store.")
        else:
            return database_url

    return DEFAULT_DATABASE_URI
