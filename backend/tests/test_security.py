from datetime import timedelta

from jose import jwt

from nutritrack.core.security import PasswordHasher, TokenCodec
from nutritrack.services.results import AuthFailure


def test_access_token_round_trip(settings):
    codec = TokenCodec(settings)
    decoded = codec.verify_access(codec.sign_access(7, "alice"))
    assert decoded.ok
    assert decoded.claims.type == "access"
    assert decoded.claims.user_id == 7
    assert decoded.claims.username == "alice"


def test_access_token_wire_claims_use_camel_case(settings):
    codec = TokenCodec(settings)
    payload = jwt.get_unverified_claims(codec.sign_refresh(3, "family-1"))
    assert payload["userId"] == 3
    assert payload["familyId"] == "family-1"
    assert payload["type"] == "refresh"
    assert payload["jti"]


def test_refresh_token_contains_family(settings):
    codec = TokenCodec(settings)
    decoded = codec.verify_refresh(codec.sign_refresh(9, "fam-xyz"))
    assert decoded.ok
    assert decoded.claims.family_id == "fam-xyz"


def test_access_verification_rejects_refresh_token_even_with_shared_secret(make_settings):
    codec = TokenCodec(make_settings(JWT_REFRESH_SECRET=None))
    refresh = codec.sign_refresh(1, "family-1")
    assert codec.verify_access(refresh).failure == AuthFailure.TOKEN_INVALID
    assert codec.verify_refresh(codec.sign_access(1, "alice")).failure == AuthFailure.TOKEN_INVALID


def test_refresh_secret_differs_from_access_secret(settings):
    codec = TokenCodec(settings)
    refresh = codec.sign_refresh(1, "family-1")
    forged = jwt.encode(jwt.get_unverified_claims(refresh), settings.JWT_SECRET, algorithm="HS256")
    assert codec.verify_refresh(forged).failure == AuthFailure.TOKEN_INVALID


def test_expired_token_reports_expired(settings):
    codec = TokenCodec(settings)
    token = codec.sign_access(1, "alice", expires_delta=timedelta(seconds=-5))
    assert codec.verify_access(token).failure == AuthFailure.TOKEN_EXPIRED


def test_tampered_token_is_invalid(settings):
    codec = TokenCodec(settings)
    token = codec.sign_access(1, "alice")
    header, payload, signature = token.split(".")
    tampered = ".".join([header, payload, signature[::-1]])
    assert codec.verify_access(tampered).failure == AuthFailure.TOKEN_INVALID
    assert codec.verify_access("not-a-jwt").failure == AuthFailure.TOKEN_INVALID


def test_payload_missing_claims_is_invalid(settings):
    codec = TokenCodec(settings)
    token = jwt.encode({"type": "access", "userId": 1}, settings.JWT_SECRET, algorithm="HS256")
    assert codec.verify_access(token).failure == AuthFailure.TOKEN_INVALID


def test_tokens_minted_together_are_distinct(settings):
    codec = TokenCodec(settings)
    assert codec.sign_refresh(1, "family-1") != codec.sign_refresh(1, "family-1")


def test_password_hash_and_verify():
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash("s3cret-password")
    assert hashed != "s3cret-password"
    assert hasher.is_hashed(hashed)
    assert hasher.verify("s3cret-password", hashed)
    assert not hasher.verify("wrong-password", hashed)


def test_pepper_is_part_of_the_hash():
    hashed = PasswordHasher(pepper="pepper-a", rounds=4).hash("s3cret-password")
    assert PasswordHasher(pepper="pepper-a", rounds=4).verify("s3cret-password", hashed)
    assert not PasswordHasher(pepper="pepper-b", rounds=4).verify("s3cret-password", hashed)


def test_malformed_hash_is_a_mismatch():
    hasher = PasswordHasher(rounds=4)
    assert hasher.verify("anything", "not-a-bcrypt-hash") is False
    assert not hasher.is_hashed("not-a-bcrypt-hash")


def test_long_passwords_keep_every_byte_and_the_pepper():
    hasher = PasswordHasher(pepper="pepper-a", rounds=4)
    hashed = hasher.hash("a" * 72 + "tail-one")

    assert hasher.verify("a" * 72 + "tail-one", hashed)
    assert not hasher.verify("a" * 72 + "tail-two", hashed)
    assert not PasswordHasher(pepper="pepper-b", rounds=4).verify("a" * 72 + "tail-one", hashed)
