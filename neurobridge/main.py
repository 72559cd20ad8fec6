#!/usr/bin/env python3
"""
Main entry point for the Typer-based Neuro-Bridge CLI.

This delegates to the UI layer in neurobridge.ui.cli to keep the
console script mapping stable.
"""

from neurobridge.ui.cli import run as neuro


if __name__ == "__main__":
    neuro()
