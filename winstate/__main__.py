"""Entry point for ``python -m winstate``."""

from .cli import main

if __name__ == "__main__":
    main()
