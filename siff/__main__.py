"""Module entrypoint for ``python -m siff``.

All argument parsing and runtime setup happen in ``siff.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
