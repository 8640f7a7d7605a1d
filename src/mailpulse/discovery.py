"""Enumerate watchable mailbox roots inside a profile directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from .types import MailRoot, MailRootInfo

LOGGER = logging.getLogger(__name__)

STORAGE_CATEGORIES = ("Mail", "ImapMail")
ALL_ACCOUNTS_LABEL = "All accounts"


def discover_mail_roots(profile_dir: Path) -> list[MailRoot]:
    """Return mail roots under ``profile_dir`` in discovery order.

    A storage folder with account subdirectories yields one root per account;
    a storage folder without subdirectories yields itself. Missing folders
    contribute nothing, so an empty list is a normal outcome.
    """

    roots: list[MailRoot] = []
    base_dir = Path(profile_dir)
    for category in STORAGE_CATEGORIES:
        category_dir = base_dir / category
        if not category_dir.is_dir():
            continue
        try:
            accounts = _child_directories(category_dir)
        except OSError as exc:
            LOGGER.warning("Unable to list mail storage %s: %s", category_dir, exc)
            continue
        if not accounts:
            roots.append(MailRoot(path=category_dir, category=category, is_account_directory=False))
            continue
        roots.extend(
            MailRoot(path=account, category=category, is_account_directory=True)
            for account in accounts
        )
    return roots


def describe_mail_roots(profile_dir: Path, roots: Iterable[MailRoot]) -> list[MailRootInfo]:
    """Build display records for ``roots`` relative to ``profile_dir``."""

    described: list[MailRootInfo] = []
    for root in roots:
        try:
            relative = os.path.relpath(root.path, profile_dir)
        except ValueError:
            relative = str(root.path)
        display = root.path.name if root.is_account_directory else ALL_ACCOUNTS_LABEL
        described.append(
            MailRootInfo(
                path=root.path,
                relative_path=relative,
                display_name=display,
                is_account_directory=root.is_account_directory,
            )
        )
    return described


def _child_directories(directory: Path) -> list[Path]:
    with os.scandir(directory) as entries:
        names = sorted(entry.name for entry in entries if entry.is_dir())
    return [directory / name for name in names]


__all__ = ["ALL_ACCOUNTS_LABEL", "STORAGE_CATEGORIES", "describe_mail_roots", "discover_mail_roots"]
