"""Entry point for `python -m apimextract`.

Usage:
    python -m apimextract extract --output-dir ./apim --service-url https://...
    python -m apimextract kinds
"""

from __future__ import annotations

from apimextract.cli.main import cli

cli()
