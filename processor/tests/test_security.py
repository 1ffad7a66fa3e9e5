import pytest

from processor.app.security import Authenticator, sign_payload

SECRET = "s3cret-token"
BODY = b'{"mode":"split","url":"https://example/video123","title":"My Song"}'


@pytest.fixture
def auth():
    return Authenticator(SECRET)


@pytest.mark.parametrize("body", [b"", BODY, b"not json at all", b"\xff\xfe\x00"])
def test_bearer_token_accepts_any_body(auth, body):
    assert auth.is_authorized(body, {"Authorization": f"Bearer {SECRET}"})


def test_bearer_token_mismatch_rejected(auth):
    assert not auth.is_authorized(BODY, {"Authorization": "Bearer wrong"})
    assert not auth.is_authorized(BODY, {"Authorization": f"Bearer {SECRET}x"})
    assert not auth.is_authorized(BODY, {"Authorization": f"Basic {SECRET}"})
    assert not auth.is_authorized(BODY, {"Authorization": SECRET})


def test_signature_over_raw_body_accepted(auth):
    signature = sign_payload(SECRET, BODY)
    assert auth.is_authorized(BODY, {"X-Isolator-Signature": signature})


def test_signature_invalidated_by_single_byte_change(auth):
    signature = sign_payload(SECRET, BODY)
    for index in range(len(BODY)):
        mutated = bytearray(BODY)
        mutated[index] ^= 0x01
        assert not auth.is_authorized(bytes(mutated), {"X-Isolator-Signature": signature})


def test_signature_uses_exact_bytes_not_reserialized_json(auth):
    spaced = b'{ "mode": "split",  "url": "https://example/video123" }'
    compact = b'{"mode":"split","url":"https://example/video123"}'
    signature = sign_payload(SECRET, spaced)
    assert auth.is_authorized(spaced, {"x-isolator-signature": signature})
    assert not auth.is_authorized(compact, {"x-isolator-signature": signature})


@pytest.mark.parametrize("header", ["", "zz", "abc", "é" * 64, "0" * 64])
def test_malformed_signature_fails_closed(auth, header):
    assert not auth.is_authorized(BODY, {"X-Isolator-Signature": header})


def test_missing_headers_rejected(auth):
    assert not auth.is_authorized(BODY, {})


@pytest.mark.parametrize("secret", ["", None])
def test_unconfigured_secret_rejects_everything(secret):
    auth = Authenticator(secret)
    assert not auth.is_authorized(BODY, {"Authorization": "Bearer "})
    assert not auth.is_authorized(BODY, {"Authorization": "Bearer"})
    assert not auth.is_authorized(BODY, {"X-Isolator-Signature": sign_payload("", BODY)})


def test_non_string_header_values_fail_closed(auth):
    assert not auth.is_authorized(BODY, {"Authorization": None, "X-Isolator-Signature": 42})
