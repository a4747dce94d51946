"""Authentication dependencies for the AutoComplaint API.

A single global API token (AUTOCOMPLAINT_API_TOKEN env var) guards every
engine endpoint. When it is not set, authentication is disabled (development
mode).
"""

from __future__ import annotations

import os
import secrets

from fastapi import Depends, Header, HTTPException


def _get_api_token() -> str:
    """Read the API token at call time (supports test overrides)."""
    return os.getenv("AUTOCOMPLAINT_API_TOKEN", "")


def _get_bearer_token(authorization: str = Header(default="")) -> str:
    """Extract bearer token from Authorization header."""
    if authorization.startswith("Bearer "):
        return authorization[7:]
    return ""


async def require_api_auth(token: str = Depends(_get_bearer_token)) -> str:
    """Dependency that enforces API token authentication."""
    api_token = _get_api_token()
    if not api_token:
        return ""  # Auth disabled
    if not secrets.compare_digest(token, api_token):
        raise HTTPException(status_code=401, detail="Invalid or missing API token")
    return token
