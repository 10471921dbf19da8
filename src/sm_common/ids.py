"""Opaque identifiers for aggregates and share links."""

import secrets
import uuid


def new_id(prefix: str) -> str:
    """Prefixed random id: new_id("bdl") -> 'bdl_9f2c...'."""
    return f"{prefix}_{uuid.uuid4().hex}"


def new_share_token() -> str:
    """URL-safe token for invite links; unguessable, not derived from the bundle id."""
    return secrets.token_urlsafe(16)
