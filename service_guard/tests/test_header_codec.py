"""
Unit tests for the Authorization header codec, body digests and RequestSigner.
"""

import base64
import pytest

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_guard.app.signing import (
    Algorithm,
    CanonicalRequest,
    RequestSigner,
    Signature,
    SignatureEngine,
    format_signature,
    parse_signature,
)
from service_guard.app.signing.digest import compute_digest, digest_matches
from service_guard.app.signing.errors import (
    EmptyHeaderListError,
    MalformedSignatureError,
    UnsupportedAlgorithmError,
)


class TestHeaderCodec:
    """Test cases for format_signature and parse_signature."""

    @pytest.fixture
    def signature(self):
        """Create a Signature."""
        return Signature(
            key_id="client-1",
            algorithm=Algorithm.HMAC_SHA256,
            headers=("(request-target)", "date"),
            signature=b"\x01\x02\x03\xff",
        )

    def test_format(self, signature):
        """Signatures render in the documented parameter order."""
        assert format_signature(signature) == (
            'Signature keyId="client-1",algorithm="hmac-sha256",'
            'headers="(request-target) date",signature="AQID/w=="'
        )

    def test_parse_formatted(self, signature):
        """A formatted header parses back to the same signature."""
        assert parse_signature(format_signature(signature)) == signature

    def test_parse_without_scheme(self):
        """The Signature scheme prefix is optional."""
        parsed = parse_signature(
            'keyId="k",algorithm="hmac-sha1",headers="(request-target) host",signature="AA=="'
        )

        assert parsed.key_id == "k"
        assert parsed.algorithm is Algorithm.HMAC_SHA1
        assert parsed.headers == ("(request-target)", "host")
        assert parsed.signature == b"\x00"

    def test_parse_created(self):
        """The optional created parameter is carried through."""
        parsed = parse_signature(
            'Signature keyId="k",algorithm="hmac-sha256",created=1402170695,signature="AA=="'
        )

        assert parsed.created_at == 1402170695
        assert parsed.headers == ("(request-target)",)

    def test_parse_tolerates_spaces(self):
        """Whitespace around separators is ignored."""
        parsed = parse_signature(
            'Signature keyId="k", algorithm="hmac-sha256", headers="date", signature="AA=="'
        )

        assert parsed.headers == ("date",)

    @pytest.mark.parametrize("value", [
        "",
        "Signature",
        'Signature keyId="k",algorithm="hmac-sha256"',
        'Signature keyId="k",algorithm="hmac-sha256",signature="not base64!"',
        'Signature keyId="k",keyId="j",algorithm="hmac-sha256",signature="AA=="',
        'Signature keyId="k",algorithm="hmac-sha256",created=soon,signature="AA=="',
        "Bearer abc.def.ghi",
    ])
    def test_malformed(self, value):
        """Undecodable headers raise MalformedSignatureError."""
        with pytest.raises(MalformedSignatureError):
            parse_signature(value)

    def test_unknown_algorithm(self):
        """Unknown algorithms surface as UnsupportedAlgorithmError."""
        with pytest.raises(UnsupportedAlgorithmError):
            parse_signature('Signature keyId="k",algorithm="rsa-sha256",signature="AA=="')

    def test_empty_headers_parameter(self):
        """An explicitly empty header list is rejected."""
        with pytest.raises(EmptyHeaderListError):
            parse_signature('Signature keyId="k",algorithm="hmac-sha256",headers="",signature="AA=="')


class TestDigest:
    """Test cases for body digests."""

    def test_compute_digest(self):
        """Digest values are base64 SHA-256 by default."""
        expected = base64.b64encode(
            bytes.fromhex("2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824")
        ).decode()

        assert compute_digest(b"hello") == f"SHA-256={expected}"

    def test_digest_matches(self):
        """A digest matches its own body only."""
        header = compute_digest(b"hello")

        assert digest_matches(header, b"hello")
        assert not digest_matches(header, b"hello!")

    def test_digest_without_known_algorithm(self):
        """Digests with no recognized algorithm never match."""
        assert not digest_matches("MD5=XUFAKrxLKna5cZ2REBfFkg==", b"hello")
        assert not digest_matches(None, b"hello")

    def test_unsupported_digest_algorithm(self):
        """compute_digest refuses unknown algorithms."""
        with pytest.raises(ValueError):
            compute_digest(b"hello", "MD5")


class TestRequestSigner:
    """Test cases for RequestSigner."""

    def test_sign_adds_headers(self):
        """Date, Digest and Authorization are added."""
        signer = RequestSigner("client-1", "secret", headers=("(request-target)", "date", "digest"))
        headers = signer.sign("POST", "/api/preferred", {"Content-Type": "text/plain"}, body=b"hello")

        assert headers["Content-Type"] == "text/plain"
        assert "Date" in headers
        assert headers["Digest"] == compute_digest(b"hello")
        assert headers["Authorization"].startswith('Signature keyId="client-1",algorithm="hmac-sha256"')

    def test_signed_headers_verify(self):
        """Headers produced by the signer verify on the server side."""
        signer = RequestSigner("client-1", "secret", Algorithm.HMAC_SHA512)
        headers = signer.sign("GET", "/api/preferred", {"Date": "Tue, 07 Jun 2014 20:51:35 GMT"})

        request = CanonicalRequest("GET", "/api/preferred", headers)
        signature = parse_signature(headers["Authorization"])

        assert headers["Date"] == "Tue, 07 Jun 2014 20:51:35 GMT"
        assert SignatureEngine().verify(b"secret", signature, request) is True
