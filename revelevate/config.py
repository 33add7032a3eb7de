from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional


ENV_PATH = Path(__file__).resolve().parent.parent / ".env"


def load_env_file(path: Path = ENV_PATH) -> Dict[str, str]:
    """Populate os.environ with key/value pairs from a .env file if present.

    Values already set in the environment win over the file.
    """

    if not path.exists():
        return {}

    loaded: Dict[str, str] = {}
    for raw_line in path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower().startswith("export "):
            line = line[7:]
        key, sep, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if not sep or not key:
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
            value = value[1:-1]
        loaded[key] = value
        os.environ.setdefault(key, value)

    return loaded


def env_default(key: str, fallback: str = "") -> str:
    return os.environ.get(key, fallback)


def provider_presets() -> Dict[str, Dict[str, str]]:
    return {
        "Gemini": {
            "base_url": env_default(
                "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta/openai"
            ),
            "model": env_default("GEMINI_MODEL", "gemini-2.5-flash"),
            "api_key": env_default("GEMINI_API_KEY", env_default("API_KEY", "")),
        },
        "Groq": {
            "base_url": env_default("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
            "model": env_default("GROQ_MODEL", ""),
            "api_key": env_default("GROQ_API_KEY", ""),
        },
        "Ollama": {
            "base_url": env_default("OLLAMA_BASE_URL", "http://localhost:11434/v1"),
            "model": env_default("OLLAMA_MODEL", "llama3.1:8b"),
            "api_key": env_default("OLLAMA_API_KEY", ""),
        },
        "Custom": {
            "base_url": env_default("LLM_BASE_URL", ""),
            "model": env_default("LLM_MODEL", ""),
            "api_key": env_default("LLM_API_KEY", ""),
        },
    }


def default_provider() -> str:
    provider = env_default("LLM_DEFAULT_PROVIDER", "Gemini")
    return provider if provider in provider_presets() else "Custom"


def snapshot_path() -> Optional[Path]:
    """Where to persist the ledger snapshot; unset means start fresh every session."""

    raw = env_default("REVELEVATE_SNAPSHOT_PATH").strip()
    return Path(raw).expanduser() if raw else None


def log_level() -> str:
    return env_default("LOG_LEVEL", "INFO").upper()
