"""Command line interface for sql2csv."""

from .main import build_parser, main

__all__ = ["build_parser", "main"]
