"""Command-line interface module for Guess Encoding.

This module provides the ``guess-encoding`` tool for probing files and
converting them to ASCII or canonical UTF-8.
"""

from .main import main

__all__ = ["main"]
