# src/segment_scheduler/__main__.py

from .cli.main import main

main()
