"""Executable entrypoint for Pourgame."""

from __future__ import annotations

from pathlib import Path
import logging
import os

from .game import PourGame


def main() -> None:
    """Launch the game."""
    logging.basicConfig(
        level=os.environ.get("POURGAME_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    root = Path(__file__).resolve().parents[2]
    PourGame(root=root).run()


if __name__ == "__main__":
    main()
