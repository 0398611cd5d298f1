"""Unit tests for password hashing and session tokens."""
import pytest
import jwt
from datetime import timedelta

from educonnect.core.auth import TokenService, hash_password, verify_password
from educonnect.core.errors import Forbidden, Unauthorized
from educonnect.domain.user import TokenClaims, UserType

from conftest import TEST_SECRET


@pytest.fixture
def student_claims():
    return TokenClaims(
        user_id="u-1",
        email="asha@example.com",
        user_type=UserType.STUDENT,
        name="Asha Kumar",
    )


class TestPasswordHashing:
    """Test bcrypt hashing helpers."""

    def test_hash_is_not_plaintext(self):
        hashed = hash_password("secret123")

        assert hashed != "secret123"
        assert hashed.startswith("$2")

    def test_verify_correct_password(self):
        hashed = hash_password("secret123")

        assert verify_password("secret123", hashed) is True

    def test_verify_wrong_password(self):
        hashed = hash_password("secret123")

        assert verify_password("secret124", hashed) is False

    def test_same_password_gets_different_salts(self):
        assert hash_password("secret123") != hash_password("secret123")

    def test_invalid_stored_hash_is_rejected(self):
        assert verify_password("secret123", "not-a-bcrypt-hash") is False


class TestTokenService:
    """Test token issue and verification."""

    def test_issue_and_verify_round_trip(self, token_service, student_claims):
        token = token_service.issue(student_claims)
        claims = token_service.verify(token)

        assert claims.user_id == "u-1"
        assert claims.email == "asha@example.com"
        assert claims.user_type == UserType.STUDENT
        assert claims.name == "Asha Kumar"
        assert claims.is_student
        assert not claims.is_parent

    def test_token_contains_required_claims(self, token_service, student_claims):
        token = token_service.issue(student_claims)
        payload = jwt.decode(token, TEST_SECRET, algorithms=["HS256"])

        assert payload["userId"] == "u-1"
        assert payload["email"] == "asha@example.com"
        assert payload["userType"] == "student"
        assert payload["name"] == "Asha Kumar"
        assert "exp" in payload
        assert "iat" in payload

    def test_default_lifetime_is_24_hours(self):
        tokens = TokenService(TEST_SECRET)

        assert tokens.expires_in == 24 * 60 * 60

    def test_expired_token_is_forbidden(self, token_service, student_claims):
        token = token_service.issue(student_claims, expires_delta=timedelta(hours=-1))

        with pytest.raises(Forbidden) as exc_info:
            token_service.verify(token)

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Invalid or expired token"

    def test_tampered_token_is_forbidden(self, token_service, student_claims):
        token = token_service.issue(student_claims)
        header, payload, signature = token.split(".")
        signature = ("A" if signature[0] != "A" else "B") + signature[1:]
        tampered = ".".join([header, payload, signature])

        with pytest.raises(Forbidden):
            token_service.verify(tampered)

    def test_token_signed_with_other_secret_is_forbidden(self, token_service, student_claims):
        other = TokenService("another-secret-key-for-educonnect-0123456789")
        token = other.issue(student_claims)

        with pytest.raises(Forbidden):
            token_service.verify(token)

    def test_malformed_token_is_forbidden(self, token_service):
        with pytest.raises(Forbidden):
            token_service.verify("not.a.valid.jwt.token")

    def test_missing_token_is_unauthorized(self, token_service):
        with pytest.raises(Unauthorized) as exc_info:
            token_service.verify(None)

        assert exc_info.value.status_code == 401

    def test_token_missing_claims_is_forbidden(self, token_service):
        token = jwt.encode({"email": "x@example.com", "exp": 9999999999}, TEST_SECRET, algorithm="HS256")

        with pytest.raises(Forbidden):
            token_service.verify(token)
