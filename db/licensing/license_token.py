"""
License key encoding: ``<base64url header>.<base64url payload>.<hex HMAC-SHA256>``.

The signature covers the literal ``header.payload`` string and is keyed with
the shared LICENSE_SECRET.
"""

import base64
import hashlib
import hmac
import json
from typing import Any, Dict

DEFAULT_HEADER = {'alg': 'HS256', 'typ': 'JWT'}


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def b64url_decode(segment: str) -> bytes:
    padded = segment + '=' * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode('ascii'))


def sign(signing_input: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``signing_input``."""
    return hmac.new(secret.encode('utf-8'), signing_input.encode('utf-8'), hashlib.sha256).hexdigest()


def encode_license_key(payload: Dict[str, Any], secret: str) -> str:
    """Build a signed license key for the given payload."""
    header = b64url_encode(json.dumps(DEFAULT_HEADER, separators=(',', ':')).encode('utf-8'))
    body = b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    return f"{header}.{body}.{sign(f'{header}.{body}', secret)}"


def decode_license_payload(segment: str) -> Dict[str, Any]:
    """
    Decode the payload segment.

    Raises:
        ValueError: If the segment is not base64url-encoded JSON object
    """
    try:
        decoded = json.loads(b64url_decode(segment).decode('utf-8'))
    except (UnicodeError, ValueError, TypeError) as e:
        raise ValueError(f"Undecodable license payload: {e}") from e
    if not isinstance(decoded, dict):
        raise ValueError("License payload is not a JSON object")
    return decoded
