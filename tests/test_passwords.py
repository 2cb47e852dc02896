"""
tests/test_passwords.py -- Unit tests for auth/passwords.py.

Coverage:
  - hash/verify round trip for the same password
  - different passwords never verify against each other's hash
  - salting: two hashes of one password differ, both verify
  - fail closed: corrupted, empty and non-bcrypt digests return False
  - the 72-byte bcrypt limit is measured in UTF-8 bytes
"""

from __future__ import annotations

import pytest

from auth.passwords import DUMMY_HASH, PASSWORD_MAX_BYTES, hash_password, verify_password


class TestHashAndVerify:
    @pytest.mark.parametrize("password", ["secret1", "correct horse battery staple", "pässwörd-ünïcode", "x" * 64])
    def test_verify_matches_own_hash(self, password: str) -> None:
        assert verify_password(password, hash_password(password)) is True

    def test_other_password_does_not_verify(self) -> None:
        digest = hash_password("secret1")
        assert verify_password("secret2", digest) is False
        assert verify_password("Secret1", digest) is False
        assert verify_password("", digest) is False

    def test_hash_is_salted(self) -> None:
        """Two hashes of the same password differ but both verify."""
        first = hash_password("secret1")
        second = hash_password("secret1")
        assert first != second
        assert verify_password("secret1", first)
        assert verify_password("secret1", second)

    def test_hash_is_not_plaintext(self) -> None:
        digest = hash_password("secret1")
        assert "secret1" not in digest
        assert digest.startswith("$2")

    def test_dummy_hash_is_a_valid_digest(self) -> None:
        assert verify_password("anything", DUMMY_HASH) is False
        assert DUMMY_HASH.startswith("$2")


class TestFailClosed:
    @pytest.mark.parametrize(
        "digest",
        ["", "not-a-hash", "$2b$04$short", "$2b$04$" + "!" * 53, "5f4dcc3b5aa765d61d8327deb882cf99"],
    )
    def test_malformed_digest_returns_false(self, digest: str) -> None:
        assert verify_password("secret1", digest) is False

    def test_truncated_real_digest_returns_false(self) -> None:
        digest = hash_password("secret1")
        assert verify_password("secret1", digest[:-5]) is False

    def test_none_digest_returns_false(self) -> None:
        assert verify_password("secret1", None) is False  # type: ignore[arg-type]


class TestByteLimit:
    def test_limit_counts_bytes_not_characters(self) -> None:
        # 40 characters, 80 bytes.
        with pytest.raises(ValueError, match="72 bytes"):
            hash_password("é" * 40)

    def test_exactly_max_bytes_hashes(self) -> None:
        password = "é" * (PASSWORD_MAX_BYTES // 2)
        assert verify_password(password, hash_password(password)) is True

    def test_oversized_input_does_not_verify(self) -> None:
        assert verify_password("é" * 40, hash_password("secret1")) is False
