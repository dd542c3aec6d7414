"""Module entrypoint for ``python -m farviewer``.

All argument parsing and mode dispatch happen in ``farviewer.cli``.
"""

from .cli import main


if __name__ == "__main__":
    main()
