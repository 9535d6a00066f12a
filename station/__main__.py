#!/usr/bin/env python3
"""
Entry point for the demo station CLI.

Run with: python -m station
"""

from .cli import cli

if __name__ == '__main__':
    cli()
