"""Authentication tokens for the Onix web API.

Three modes are supported:

    none  -- no Authorization header is sent.
    basic -- ``Basic <base64(user:password)>``.
    oidc  -- ``Bearer <access_token>`` obtained once at startup through the
             OAuth2 resource-owner password grant against ``token_uri``.

The token is acquired during bootstrap and is read-only afterwards.
"""

from __future__ import annotations

import base64

import httpx
import structlog

from oxkube.errors import AuthenticationError
from oxkube.models.config import OnixConfig

_log = structlog.get_logger(component="cmdb.auth")


def basic_token(username: str, password: str) -> str:
    """Return the value of a basic Authorization header."""
    raw = f"{username}:{password}".encode()
    return f"Basic {base64.b64encode(raw).decode('ascii')}"


async def bearer_token(
    token_uri: str,
    client_id: str,
    client_secret: str,
    username: str,
    password: str,
    http: httpx.AsyncClient | None = None,
) -> str:
    """Request an access token from an OpenID Connect provider.

    Raises:
        AuthenticationError: if the provider cannot be reached, rejects the
            credentials, or returns a body without ``access_token``.
    """
    form = {
        "grant_type": "password",
        "client_id": client_id,
        "client_secret": client_secret,
        "username": username,
        "password": password,
        "scope": "openid",
    }
    owns_client = http is None
    client = http or httpx.AsyncClient(timeout=30.0)
    try:
        response = await client.post(token_uri, data=form, headers={"Accept": "application/json"})
    except httpx.HTTPError as exc:
        raise AuthenticationError(f"token request to {token_uri} failed: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise AuthenticationError(f"token request rejected with status {response.status_code}: {response.text[:200]}")
    try:
        access_token = response.json()["access_token"]
    except (ValueError, KeyError, TypeError) as exc:
        raise AuthenticationError("token response does not contain an access_token") from exc
    return f"Bearer {access_token}"


async def acquire_token(config: OnixConfig, http: httpx.AsyncClient | None = None) -> str:
    """Return the Authorization header value for the configured auth mode."""
    mode = config.auth_mode.lower()
    if mode == "none":
        _log.debug("no authentication used to connect to the cmdb")
        return ""
    if mode == "basic":
        _log.debug("setting basic authentication token")
        return basic_token(config.username, config.password)
    if mode == "oidc":
        _log.debug("requesting bearer authentication token", token_uri=config.token_uri)
        token = await bearer_token(
            config.token_uri,
            config.client_id,
            config.app_secret,
            config.username,
            config.password,
            http=http,
        )
        _log.debug("bearer token acquired")
        return token
    raise AuthenticationError(f"cannot understand authentication mode selected: {config.auth_mode}")
