"""Run mailpulse from a source checkout via `python main.py`."""

import sys
from pathlib import Path

# Prefer the in-tree package over an installed one.
sys.path.insert(0, str(Path(__file__).parent / "src"))

from mailpulse.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
