"""Entry point for running swipe as a module.

Usage:
    python -m swipe validate-config
    python -m swipe --help
"""

from dotenv import load_dotenv

load_dotenv()  # SWIPE_CONFIG_PATH may come from .env

from swipe.cli import main  # noqa: E402

if __name__ == "__main__":
    main()
