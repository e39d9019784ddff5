"""
Entry point for running airbasix as a module.

Usage:
    python -m airbasix --help
    python -m airbasix sync --dry-run
    python -m airbasix show-config
"""

from airbasix.cli import cli

if __name__ == "__main__":
    cli()
