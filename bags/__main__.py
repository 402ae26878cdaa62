"""Allow running the package with ``python -m bags``."""

from .cli import main

if __name__ == '__main__':
    main()
