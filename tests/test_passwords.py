"""Tests for password hashing."""

import pytest

from schema_crud.passwords import hash_password, verify_password


class TestPasswords:
    """Verify bcrypt hashing and verification."""

    def test_hash_is_salted(self) -> None:
        first, second = hash_password("hunter2"), hash_password("hunter2")
        assert first != second
        assert first.startswith("$2")

    def test_verify(self) -> None:
        hashed = hash_password("hunter2")
        assert verify_password("hunter2", hashed) is True
        assert verify_password("hunter3", hashed) is False

    def test_empty_rejected(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            hash_password("")

    @pytest.mark.parametrize(("plain", "hashed"), [("", "x"), ("hunter2", ""), ("hunter2", "not-a-hash")])
    def test_verify_bad_input(self, plain: str, hashed: str) -> None:
        assert verify_password(plain, hashed) is False
