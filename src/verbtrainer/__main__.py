"""Run the trainer with `python -m verbtrainer`."""

from __future__ import annotations

from .main import main_entry


def main() -> None:
    """Delegate to the console script."""
    main_entry()


if __name__ == "__main__":  # pragma: no cover
    main()
