"""mailpulse: watch a mail client's local storage for activity."""

from importlib import metadata


def _discover_version() -> str:
    """Return the installed package version, or a dev marker from a source tree."""
    try:
        return metadata.version("mailpulse")
    except metadata.PackageNotFoundError:  # pragma: no cover - running from a checkout
        return "0.0.0"


__all__ = ["__version__"]
__version__ = _discover_version()
