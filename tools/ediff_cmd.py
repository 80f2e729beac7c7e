#!/usr/bin/env python3
"""Script entry point for ediff."""

try:
    from tools.ediff import main  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - fallback for script invocation
    from ediff.cli import main


if __name__ == "__main__":
    main()
