"""Allow ``python -m skycast``."""

from skycast.cli.commands import app

if __name__ == "__main__":
    app()
