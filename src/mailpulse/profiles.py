"""Locate, parse, and resolve the mail client's profiles.ini."""

from __future__ import annotations

import logging
import os
import re
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

from .types import ProfileRecord, ProfilesIni, ResolvedProfile

LOGGER = logging.getLogger(__name__)

CLIENT_DIR_NAME = "Thunderbird"
PROFILES_INI_NAME = "profiles.ini"
PROFILE_SECTION_PREFIX = "profile"
INSTALL_SECTION_PREFIX = "install"
COMMENT_PREFIXES = (";", "#")
DEFAULT_PROFILE_NAMES = ("default-release", "default")

_LINE_SPLIT = re.compile(r"\r?\n")


def profiles_ini_path(
    platform: str | None = None,
    environ: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Path:
    """Return where profiles.ini is expected on ``platform``.

    Pure path computation: the returned file may not exist.
    """

    platform = platform or sys.platform
    env = os.environ if environ is None else environ
    home_dir = home or Path.home()
    if platform == "win32":
        app_data = env.get("APPDATA")
        base = Path(app_data) if app_data else home_dir / "AppData" / "Roaming"
        return base / CLIENT_DIR_NAME / PROFILES_INI_NAME
    if platform == "darwin":
        return home_dir / "Library" / CLIENT_DIR_NAME / PROFILES_INI_NAME
    return home_dir / f".{CLIENT_DIR_NAME.lower()}" / PROFILES_INI_NAME


def parse_profiles_ini(text: str) -> ProfilesIni:
    """Split profiles.ini text into profile and install records.

    Sections other than ``[Profile*]`` and ``[Install*]`` close the current
    record; their keys are discarded. Malformed lines are ignored.
    """

    profiles: list[dict[str, str]] = []
    installs: list[dict[str, str]] = []
    sections: list[str] = []
    install_sections: list[str] = []
    current: dict[str, str] | None = None

    for raw_line in _LINE_SPLIT.split(text):
        line = raw_line.strip()
        if not line or line.startswith(COMMENT_PREFIXES):
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1]
            normalized = section.lower()
            if normalized.startswith(PROFILE_SECTION_PREFIX):
                current = {}
                profiles.append(current)
                sections.append(section)
            elif normalized.startswith(INSTALL_SECTION_PREFIX):
                current = {}
                installs.append(current)
                install_sections.append(section)
            else:
                current = None
            continue
        if current is None or "=" not in line:
            continue
        key, value = line.split("=", 1)
        current[key.strip().lower()] = value.strip()

    return ProfilesIni(
        profiles=tuple(_freeze(sections, profiles)),
        installs=tuple(_freeze(install_sections, installs)),
    )


def profile_path(record: ProfileRecord, config_dir: Path) -> Path | None:
    """Return the absolute directory a profile record points to."""

    stored = record.get("path")
    if not stored:
        return None
    if record.get("isrelative") == "1":
        return _normalize(Path(config_dir) / stored)
    return _normalize(Path(stored))


def select_profile(parsed: ProfilesIni, config_dir: Path) -> ResolvedProfile | None:
    """Apply profile precedence rules; return ``None`` when nothing usable."""

    profiles = parsed.profiles
    if not profiles:
        return None

    chosen = (
        _install_default(parsed, config_dir)
        or _first(profiles, lambda record: record.get("default") == "1")
        or _named(profiles, DEFAULT_PROFILE_NAMES[0])
        or _named(profiles, DEFAULT_PROFILE_NAMES[1])
        or profiles[0]
    )
    path = profile_path(chosen, config_dir)
    if path is None:
        LOGGER.debug("Selected profile section [%s] has no path", chosen.section)
        return None
    return ResolvedProfile(path=path, record=chosen)


def resolve_default_profile(ini_path: Path | None = None) -> ResolvedProfile | None:
    """Read profiles.ini and resolve the active profile directory.

    A missing or unreadable file yields ``None``; this function never raises.
    """

    path = Path(ini_path).expanduser() if ini_path else profiles_ini_path()
    if not path.is_file():
        LOGGER.debug("profiles.ini not found at %s", path)
        return None
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        LOGGER.warning("Unable to read %s: %s", path, exc)
        return None
    resolved = select_profile(parse_profiles_ini(text), path.parent)
    if resolved is not None:
        LOGGER.debug("Resolved profile [%s] -> %s", resolved.record.section, resolved.path)
    return resolved


def _install_default(parsed: ProfilesIni, config_dir: Path) -> ProfileRecord | None:
    entry = _first(parsed.installs, lambda record: bool(record.get("default")))
    if entry is None:
        return None
    target = _normalize(Path(config_dir) / entry.get("default", ""))
    return _first(
        parsed.profiles,
        lambda record: profile_path(record, config_dir) == target,
    )


def _named(records: Iterable[ProfileRecord], name: str) -> ProfileRecord | None:
    return _first(records, lambda record: (record.get("name") or "").lower() == name)


def _first(records, predicate) -> ProfileRecord | None:
    for record in records:
        if predicate(record):
            return record
    return None


def _freeze(sections: list[str], values: list[dict[str, str]]) -> list[ProfileRecord]:
    return [ProfileRecord(section=name, values=data) for name, data in zip(sections, values)]


def _normalize(path: Path) -> Path:
    return Path(os.path.normpath(os.path.abspath(path)))


__all__ = [
    "parse_profiles_ini",
    "profile_path",
    "profiles_ini_path",
    "resolve_default_profile",
    "select_profile",
]
