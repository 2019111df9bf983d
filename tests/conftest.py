"""
Test runs log to stderr only (captured by pytest), never to ./var/data/logs.
Set before any acaragraph module is imported.
"""

import os

os.environ.setdefault("ACARA_LOG_FILE", "")
os.environ.setdefault("ACARA_LOG_CONSOLE", "1")
