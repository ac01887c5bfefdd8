"""Allow `python -m src.trainer`."""

from .cli import main

main()
