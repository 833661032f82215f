"""Entry point for ``python -m nestapi``."""

from .cli import main

main()
