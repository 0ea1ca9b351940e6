"""
Version string for the Doomock bot.
Reads BOT_VERSION from the environment, then a VERSION file at the repository
root, and falls back to the packaged default.
"""
import os
import re
from pathlib import Path

DEFAULT_VERSION = "1.0.0"
_VERSION_RE = re.compile(r"^v?(\d+\.\d+\.\d+)")


def _normalize(raw: str) -> str:
    match = _VERSION_RE.match(raw.strip())
    return match.group(1) if match else DEFAULT_VERSION


def get_version() -> str:
    env_version = os.getenv("BOT_VERSION")
    if env_version:
        return _normalize(env_version)

    version_file = Path(__file__).resolve().parents[2] / "VERSION"
    if version_file.is_file():
        return _normalize(version_file.read_text(encoding="utf-8"))

    return DEFAULT_VERSION
