"""Unit tests for content digests."""

from imagevault.content_hasher import digest, verify_digest


def test_digest_of_empty_payload():
    assert digest(b"") == "d41d8cd98f00b204e9800998ecf8427e"


def test_digest_is_deterministic_and_fixed_length():
    payload = b"\x89PNG\r\n\x1a\n" + b"\x00" * 100
    assert digest(payload) == digest(bytes(payload))
    assert len(digest(payload)) == 32


def test_digest_differs_for_different_content():
    assert digest(b"image-a") != digest(b"image-b")


def test_digest_with_other_algorithm():
    assert len(digest(b"data", algorithm="sha256")) == 64


def test_verify_digest():
    assert verify_digest(b"hello", digest(b"hello"))
    assert not verify_digest(b"hello", digest(b"world"))
