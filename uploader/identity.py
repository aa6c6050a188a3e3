"""Reads the caller's identity from a bearer token."""

import base64
import binascii
import json
from typing import Optional

from uploader.exceptions import NotAuthenticatedError


def decode_token_claims(token: Optional[str]) -> Optional[dict]:
    """
    Decode the payload segment of a JWT without verifying it.

    The service verifies the signature; the client only needs the claims
    it echoes back in requests.

    Args:
        token: Bearer token

    Returns:
        Claims dictionary, or None if the token is not a readable JWT
    """
    if not token or token.count('.') < 1:
        return None
    payload = token.split('.')[1]
    payload += '=' * (-len(payload) % 4)
    try:
        raw = base64.urlsafe_b64decode(payload.encode('ascii'))
        claims = json.loads(raw.decode('utf-8'))
    except (binascii.Error, UnicodeError, ValueError):
        return None
    return claims if isinstance(claims, dict) else None


def user_id_from_token(token: Optional[str]) -> int:
    """
    Get the numeric user id carried by a bearer token.

    Args:
        token: Bearer token

    Returns:
        User id from the ``user_id`` claim

    Raises:
        NotAuthenticatedError: If there is no token or it has no usable user id
    """
    claims = decode_token_claims(token)
    if not claims:
        raise NotAuthenticatedError("Login required.")
    try:
        user_id = int(claims.get('user_id'))
    except (TypeError, ValueError):
        raise NotAuthenticatedError("Login required.")
    if user_id <= 0:
        raise NotAuthenticatedError("Login required.")
    return user_id
