"""Tests for share password hashing."""

from __future__ import annotations

import pytest

from buildshare.app.sharing.passwords import hash_share_password, verify_share_password


def test_hash_never_contains_plaintext():
    encoded = hash_share_password('abc123')
    assert 'abc123' not in encoded
    assert encoded.startswith('scrypt$')


def test_hashes_are_salted():
    assert hash_share_password('abc123') != hash_share_password('abc123')


def test_verify_round_trip():
    encoded = hash_share_password('abc123')
    assert verify_share_password('abc123', encoded)
    assert not verify_share_password('abc124', encoded)
    assert not verify_share_password('', encoded)


@pytest.mark.parametrize('encoded', [None, '', 'abc123', 'scrypt$1$2$3', 'bcrypt$a$b$c$d$e', 'scrypt$x$8$1$AA$AA'])
def test_malformed_hashes_never_verify(encoded):
    assert not verify_share_password('abc123', encoded)
