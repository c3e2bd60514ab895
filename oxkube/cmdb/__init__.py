"""Onix CMDB access.

Exposes:
    CMDB          -- Protocol of the operations the sync engine consumes.
    CMDBClient    -- httpx-backed implementation of the web API.
    acquire_token -- Builds the Authorization header for the configured mode.
    basic_token   -- Encodes a basic Authorization header value.
"""

from oxkube.cmdb.auth import acquire_token, basic_token
from oxkube.cmdb.client import CMDB, CMDBClient

__all__ = ["CMDB", "CMDBClient", "acquire_token", "basic_token"]
