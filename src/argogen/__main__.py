"""Entry point for running argogen as a module.

Usage:
    python -m argogen [command] [options]

Example:
    python -m argogen generate --apply
    python -m argogen check
"""

from argogen.cli import app

if __name__ == "__main__":
    app()
