"""Entry point for ``python -m lattice``."""

from .cli import main

if __name__ == "__main__":  # pragma: no cover
    main()
