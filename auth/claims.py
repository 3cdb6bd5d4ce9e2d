from __future__ import annotations

import base64
import binascii
import json


def decode_claims(token: str) -> dict:
    """Read the payload of a JWT without verifying its signature.

    Only for display data such as the user id and role; the backend stays
    the authority on whether a token is valid.
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise RuntimeError("Invalid token format.")
    try:
        data = base64.urlsafe_b64decode(parts[1] + "=" * (-len(parts[1]) % 4))
        claims = json.loads(data)
    except (binascii.Error, UnicodeDecodeError, ValueError) as error:
        raise RuntimeError("Token payload is not valid base64url JSON.") from error
    if not isinstance(claims, dict):
        raise RuntimeError("Token payload must be a JSON object.")
    return claims


def role_from_claims(claims: dict, default: str = "staff") -> str:
    roles = claims.get("roles")
    if isinstance(roles, list) and roles and isinstance(roles[0], str):
        return roles[0]
    return default


def subject_from_claims(claims: dict) -> str | None:
    subject = claims.get("sub")
    return subject if isinstance(subject, str) else None
