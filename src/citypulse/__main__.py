"""citypulse CLI bootstrap."""

from __future__ import annotations

from citypulse.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
