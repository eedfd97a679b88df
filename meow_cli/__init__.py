"""Meow CLI - a terminal agent with tools, sessions and autopilot."""

__version__ = "0.1.0"

from meow_cli.config import Config

__all__ = ["Config", "__version__"]
