"""Allow ``python -m keepsake``."""

from .main import main

main()
