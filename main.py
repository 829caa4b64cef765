#!/usr/bin/env python3
"""Main entry point for Power Monitor.

This file allows running the application directly with:
    uv run python main.py serve

For full CLI usage, use:
    uv run pwrmon --help
"""

from pwrmon.cli import cli

if __name__ == "__main__":
    cli()
