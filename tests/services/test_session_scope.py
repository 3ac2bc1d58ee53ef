"""Tests for the engine helpers and the session_scope unit of work."""

from uuid import uuid4

import pytest

from assignx_kernel.db.engine import get_engine, get_session, reset_engine, session_scope
from assignx_kernel.exceptions import WalletNotFoundError
from assignx_kernel.models.wallet import WalletOwnerType
from assignx_kernel.services.wallet_service import WalletService


class TestSessionScope:

    def test_commits_on_success(self, engine, deterministic_clock):
        owner = uuid4()
        with session_scope() as s:
            wallet = WalletService(s, deterministic_clock).get_or_create_wallet(
                owner, WalletOwnerType.DOER
            )
            WalletService(s, deterministic_clock).credit(wallet.wallet_id, 5000, "top-up-1")

        check = get_session()
        try:
            assert WalletService(check, deterministic_clock).wallet_for_owner(owner).available == 5000
        finally:
            check.close()

    def test_rolls_back_and_reraises(self, engine, session_factory, deterministic_clock, captured_logs):
        owner = uuid4()
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as s:
                WalletService(s, deterministic_clock).get_or_create_wallet(owner, WalletOwnerType.DOER)
                raise RuntimeError("boom")

        with session_scope(session_factory) as s:
            with pytest.raises(WalletNotFoundError):
                WalletService(s, deterministic_clock).wallet_for_owner(owner)
        assert captured_logs.find("transaction_rolled_back")


class TestUninitialized:

    def test_helpers_require_init(self):
        reset_engine()
        with pytest.raises(RuntimeError):
            get_engine()
        with pytest.raises(RuntimeError):
            get_session()
