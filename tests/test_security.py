import time

from mathtrainer.core.config import get_settings
from mathtrainer.core.security import create_session_token, verify_session_token


def test_token_round_trip():
    token = create_session_token("learner-42")
    assert verify_session_token(token) == "learner-42"


def test_tampered_token_is_rejected():
    token = create_session_token("learner-42")
    encoded, sig = token.rsplit(".", 1)
    assert verify_session_token(encoded + "." + "0" * len(sig)) is None
    assert verify_session_token(create_session_token("other").split(".")[0] + "." + sig) is None


def test_expired_and_malformed_tokens_are_rejected():
    old = int(time.time()) - get_settings().auth_cookie_max_age - 60
    assert verify_session_token(create_session_token("learner-42", issued_at=old)) is None
    assert verify_session_token(None) is None
    assert verify_session_token("garbage") is None
    assert verify_session_token("!!!.abc") is None
