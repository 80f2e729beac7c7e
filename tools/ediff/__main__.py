"""Allow ``python -m tools.ediff``."""

from .cli import main

if __name__ == "__main__":
    main()
