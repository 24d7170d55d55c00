"""Entry point for running titleblock_engine as a module.

Usage:
    python -m titleblock_engine <command> [options]
"""
from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
