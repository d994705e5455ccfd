import jwt
import pytest

from application.services.token_service import TokenService


def test_access_token_carries_identity_and_role(token_service):
    token = token_service.create_access_token("alice@example.com", "EDITOR")

    result = token_service.validate_and_parse(token)
    assert result.valid
    assert result.claims["sub"] == "alice@example.com"
    assert result.claims["role"] == "EDITOR"
    assert result.claims["type"] == "access"
    assert token_service.get_email(token) == "alice@example.com"
    assert token_service.get_role(token) == "EDITOR"
    assert token_service.get_jti(token) == result.claims["jti"]


def test_each_token_gets_a_fresh_jti(token_service):
    first = token_service.get_jti(token_service.create_access_token("a@example.com", "VIEWER"))
    second = token_service.get_jti(token_service.create_access_token("a@example.com", "VIEWER"))
    assert first and second and first != second


def test_default_algorithm_is_hs512(token_service):
    token = token_service.create_access_token("a@example.com", "VIEWER")
    assert jwt.get_unverified_header(token)["alg"] == "HS512"


def test_expiry_follows_injected_clock(token_service, clock):
    token = token_service.create_access_token("a@example.com", "VIEWER")
    assert token_service.get_remaining_lifetime_ms(token) == 15 * 60 * 1000

    clock.advance(minutes=14, seconds=59)
    assert token_service.validate(token)
    assert token_service.get_remaining_lifetime_ms(token) == 1000

    clock.advance(seconds=1)
    result = token_service.validate_and_parse(token)
    assert not result.valid
    assert result.expired
    assert token_service.get_email(token) is None
    assert token_service.get_remaining_lifetime_ms(token) == 0


@pytest.mark.parametrize("token", [None, "", "not-a-jwt", "a.b.c"])
def test_garbage_is_invalid_not_an_error(token_service, token):
    result = token_service.validate_and_parse(token)
    assert not result.valid
    assert not result.expired
    assert token_service.get_email(token) is None


def test_tampered_signature_is_rejected(token_service):
    token = token_service.create_access_token("a@example.com", "VIEWER")
    header, payload, signature = token.split(".")
    forged = ".".join([header, payload, signature[::-1]])
    assert not token_service.validate(forged)


def test_foreign_secret_is_rejected(token_service, clock):
    other = TokenService("another-secret-" + "y" * 64, clock=clock)
    token = other.create_access_token("a@example.com", "VIEWER")
    assert not token_service.validate(token)


def test_audience_and_issuer_are_enforced(token_service, clock):
    other = TokenService(audience="somebody-else", clock=clock)
    assert not token_service.validate(other.create_access_token("a@example.com", "VIEWER"))

    other = TokenService(issuer="somebody-else", clock=clock)
    assert not token_service.validate(other.create_access_token("a@example.com", "VIEWER"))


def test_short_secret_is_refused(clock):
    with pytest.raises(ValueError):
        TokenService("too-short", clock=clock)
