from datetime import UTC, datetime, timedelta

import jwt
import pytest

from trailcam.services import AuthService


@pytest.fixture
def service():
    return AuthService(secret_key="unit-test-secret", expire_days=1)


def test_round_trip(service):
    token = service.create_access_token("broadcaster-9", name="Summit Team")
    payload = service.verify_token(token)
    assert payload["sub"] == "broadcaster-9"
    assert payload["name"] == "Summit Team"


def test_expired_token_rejected(service):
    token = jwt.encode(
        {"sub": "b", "exp": datetime.now(UTC) - timedelta(minutes=1)},
        "unit-test-secret",
        algorithm="HS256",
    )
    assert service.verify_token(token) is None


def test_wrong_secret_rejected(service):
    token = AuthService(secret_key="another-secret").create_access_token("b")
    assert service.verify_token(token) is None


def test_token_without_subject_rejected(service):
    token = jwt.encode(
        {"exp": datetime.now(UTC) + timedelta(minutes=5)}, "unit-test-secret", algorithm="HS256"
    )
    assert service.verify_token(token) is None


def test_empty_secret_not_allowed():
    with pytest.raises(ValueError):
        AuthService(secret_key="")
