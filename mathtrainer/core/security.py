"""Signed learner tokens carried in the auth cookie.

Login and cookie issuing live in the external auth service. This module only
signs (for that service and for tests) and verifies the token format:
base64(learner_id:timestamp).hmac
"""
import base64
import hashlib
import hmac
import time

from mathtrainer.core.config import get_settings


def _secret() -> bytes:
    secret = get_settings().secret_key
    return secret.encode("utf-8") if isinstance(secret, str) else secret


def _sign_payload(payload: bytes) -> str:
    sig = hmac.new(_secret(), payload, hashlib.sha256).hexdigest()
    return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=") + "." + sig


def _verify_sig(payload: bytes, sig: str) -> bool:
    expected = hmac.new(_secret(), payload, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, sig)


def create_session_token(learner_id: str, issued_at: int | None = None) -> str:
    """Create a signed token for the learner (auth cookie value)."""
    ts = int(time.time()) if issued_at is None else int(issued_at)
    payload = f"{learner_id}:{ts}".encode("utf-8")
    return _sign_payload(payload)


def verify_session_token(token: str | None) -> str | None:
    """Verify signed token and return learner_id if valid; None otherwise."""
    if not token or "." not in token:
        return None
    try:
        encoded, sig = token.rsplit(".", 1)
        pad = 4 - len(encoded) % 4
        if pad != 4:
            encoded += "=" * pad
        payload = base64.urlsafe_b64decode(encoded)
        if not _verify_sig(payload, sig):
            return None
        learner_id, ts_raw = payload.decode("utf-8").rsplit(":", 1)
        ts = int(ts_raw)
    except (ValueError, UnicodeDecodeError):
        return None

    if not learner_id.strip():
        return None
    if abs(time.time() - ts) > get_settings().auth_cookie_max_age:
        return None
    return learner_id
