"""
tests/test_identity_service.py — Accounts & Password Hashing
=============================================================
"""

from __future__ import annotations

import pytest

from adreward.errors import ValidationError
from adreward.services import identity_service
from adreward.services.identity_service import hash_password, user_to_dict, verify_password


class TestPasswordHashing:
    def test_round_trip(self):
        stored = hash_password("hunter22")
        assert stored.startswith("scrypt$")
        assert verify_password("hunter22", stored)
        assert not verify_password("hunter23", stored)

    def test_salted(self):
        assert hash_password("hunter22") != hash_password("hunter22")

    @pytest.mark.parametrize("stored", ["", "plain", "bcrypt$1$2$3$aa$bb"])
    def test_malformed_hash_never_verifies(self, stored):
        assert verify_password("hunter22", stored) is False


class TestCreateUser:
    def test_registers(self, db_engine):
        user = identity_service.create_user(
            db_engine, "  viewer  ", "viewer@example.com", "hunter22"
        )
        assert user.id is not None
        assert user.username == "viewer"
        assert user.password_hash != "hunter22"

    def test_duplicate_username(self, db_engine):
        identity_service.create_user(db_engine, "viewer", "a@example.com", "hunter22")
        with pytest.raises(ValidationError, match="Username already exists"):
            identity_service.create_user(db_engine, "viewer", "b@example.com", "hunter22")

    def test_duplicate_email(self, db_engine):
        identity_service.create_user(db_engine, "viewer", "a@example.com", "hunter22")
        with pytest.raises(ValidationError, match="Email already registered"):
            identity_service.create_user(db_engine, "other", "a@example.com", "hunter22")

    @pytest.mark.parametrize("username, email, password", [
        ("ab", "a@example.com", "hunter22"),
        ("x" * 101, "a@example.com", "hunter22"),
        ("viewer", "a@example.com", "short"),
        ("viewer", "nope", "hunter22"),
    ])
    def test_rejects_invalid_input(self, db_engine, username, email, password):
        with pytest.raises(ValidationError):
            identity_service.create_user(db_engine, username, email, password)


class TestAuthenticate:
    def test_valid_credentials(self, db_engine, make_user):
        user = make_user("viewer")
        assert identity_service.authenticate(db_engine, "viewer", "hunter22").id == user.id

    def test_wrong_password(self, db_engine, make_user):
        make_user("viewer")
        assert identity_service.authenticate(db_engine, "viewer", "wrong!!") is None

    def test_unknown_user(self, db_engine):
        assert identity_service.authenticate(db_engine, "ghost", "hunter22") is None

    def test_projection_hides_password(self, make_user):
        assert "password_hash" not in user_to_dict(make_user())
