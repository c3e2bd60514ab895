"""Entry point for `python -m oxkube`.

Usage:
    python -m oxkube
    OXKU_ONIX_URL=http://onix:8080 python -m oxkube
"""

from __future__ import annotations

from oxkube.app import run

run()
