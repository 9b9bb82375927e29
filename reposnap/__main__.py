"""Module entrypoint for ``python -m reposnap``."""

from .cli import main


if __name__ == "__main__":
    main()
