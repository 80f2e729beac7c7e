"""Compare the output of two shell commands without temporary files."""

from .cli import main

__all__ = ["main"]
