"""Webhook HTTP layer for OxKube.

Exposes:
    create_app -- FastAPI application factory.
"""

from oxkube.api.app import create_app

__all__ = ["create_app"]
