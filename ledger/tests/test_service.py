"""
Unit Tests for the Ledger Service

Tests cover:
1. Account registration
2. Deposit and withdrawal flows
3. Product purchase
4. Invite counters
5. Lookup, update and deletion
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from uuid import UUID, uuid4

from ledger.exceptions import (
    AccountNotFoundError,
    TransactionNotFoundError,
    ValidationError,
)
from ledger.models import (
    CreateAccountRequest,
    CreateDepositRequest,
    CreateWithdrawalRequest,
    PurchaseProductRequest,
    TransactionStatus,
    UpdateAccountRequest,
    utcnow,
)
from ledger.service import LedgerService


def register(service: LedgerService, phone: str = "01011111111", **kwargs):
    return service.create_account(CreateAccountRequest(phone=phone, **kwargs))


class TestRegistration:
    """Tests for creating accounts."""

    def test_create_account_with_signup_product(self):
        service = LedgerService()

        account = register(service, name="Sara")

        assert len(account.products) == 1
        assert account.products[0].price == Decimal("100")
        assert account.products[0].rate == Decimal("0.10")
        # 0 profit - 100 price + 120 bonus
        assert account.balance == Decimal("20")
        assert service.get_account(account.id).name == "Sara"

    def test_duplicate_phone_rejected(self):
        service = LedgerService()
        register(service)

        with pytest.raises(ValidationError):
            register(service)

        assert service.is_phone_available("01011111111") is False
        assert service.is_phone_available("01099999999") is True

    def test_referrer_must_exist(self):
        service = LedgerService()

        with pytest.raises(AccountNotFoundError):
            register(service, referrer_id=uuid4())

    def test_deleting_referrer_keeps_invitee(self):
        service = LedgerService()
        referrer = register(service, phone="0101")
        invitee = register(service, phone="0102", referrer_id=referrer.id)

        service.delete_account(referrer.id)

        account = service.get_account(invitee.id)
        assert account.referrer_id == referrer.id


class TestDeposits:
    """Tests for the deposit flow."""

    def test_pending_deposit_does_not_count(self):
        service = LedgerService()
        account = register(service)

        updated = service.add_deposit(
            account.id, CreateDepositRequest(amount=Decimal("500"), source="0105", destination="0101")
        )

        assert updated.deposits[0].status == TransactionStatus.PENDING
        assert updated.balance == Decimal("20")

    def test_successful_deposit_counts(self):
        service = LedgerService()
        account = register(service)
        account = service.add_deposit(
            account.id, CreateDepositRequest(amount=Decimal("500"), source="0105", destination="0101")
        )

        updated = service.change_deposit_status(account.id, account.deposits[0].id, 1)

        assert updated.deposits[0].status == TransactionStatus.SUCCESS
        assert updated.balance == Decimal("520")

    def test_unknown_deposit(self):
        service = LedgerService()
        account = register(service)

        with pytest.raises(TransactionNotFoundError):
            service.change_deposit_status(account.id, uuid4(), 1)

    def test_invalid_status(self):
        service = LedgerService()
        account = register(service)
        account = service.add_deposit(
            account.id, CreateDepositRequest(amount=Decimal("5"), source="a", destination="b")
        )

        with pytest.raises(ValidationError):
            service.change_deposit_status(account.id, account.deposits[0].id, 7)


class TestWithdrawals:
    """Tests for the withdrawal flow."""

    def test_withdrawal_reserves_funds_immediately(self):
        service = LedgerService()
        account = register(service)

        updated = service.request_withdrawal(account.id, CreateWithdrawalRequest(amount=Decimal("15")))

        assert updated.balance == Decimal("5")

    def test_failed_withdrawal_releases_funds(self):
        service = LedgerService()
        account = register(service)
        account = service.request_withdrawal(account.id, CreateWithdrawalRequest(amount=Decimal("15")))

        updated = service.change_withdrawal_status(account.id, account.withdrawals[0].id, 2)

        assert updated.balance == Decimal("20")
        assert updated.withdrawals[0].succeeded_at is None

    def test_successful_withdrawal_sets_success_time(self):
        service = LedgerService()
        account = register(service)
        account = service.request_withdrawal(account.id, CreateWithdrawalRequest(amount=Decimal("15")))

        updated = service.change_withdrawal_status(account.id, account.withdrawals[0].id, 1)

        assert updated.withdrawals[0].status == TransactionStatus.SUCCESS
        assert updated.withdrawals[0].succeeded_at is not None
        assert updated.balance == Decimal("5")

    def test_unknown_withdrawal(self):
        service = LedgerService()
        account = register(service)

        with pytest.raises(TransactionNotFoundError):
            service.change_withdrawal_status(account.id, uuid4(), 1)


class TestProductsAndInvites:
    """Tests for purchases and referral counters."""

    def test_purchase_deducts_price_and_accrues(self):
        service = LedgerService()
        account = register(service)

        updated = service.purchase_product(account.id, PurchaseProductRequest(
            name="Gold",
            price=Decimal("1000"),
            rate=Decimal("0.05"),
            total_profit=Decimal("18000"),
            total_percentage=Decimal("1800"),
            period=360,
            start=utcnow() - timedelta(days=2, hours=1),
        ))

        assert len(updated.products) == 2
        assert updated.products[1].elapsed_days == 2
        # 20 - 1000 + 1000*0.05*2
        assert updated.balance == Decimal("-880")

    def test_invites_profit_increases_balance(self):
        service = LedgerService()
        account = register(service)

        updated = service.increase_invites_profit(account.id, Decimal("30"))

        assert updated.invites_profit == Decimal("30")
        assert updated.balance == Decimal("50")

    def test_invites_count_floor(self):
        service = LedgerService()
        account = register(service)

        service.increase_invites_count(account.id, 2)
        updated = service.decrease_invites_count(account.id, 5)

        assert updated.invites_count == 0

    def test_non_positive_amount_rejected(self):
        service = LedgerService()
        account = register(service)

        with pytest.raises(ValidationError):
            service.increase_invites_count(account.id, 0)


class TestLookupAndUpdate:
    """Tests for reading, updating and deleting accounts."""

    def test_unknown_account(self):
        service = LedgerService()

        with pytest.raises(AccountNotFoundError):
            service.get_account(UUID("00000000-0000-0000-0000-000000000000"))

    def test_update_payout_fields(self):
        service = LedgerService()
        account = register(service)

        updated = service.update_account(
            account.id, UpdateAccountRequest(wallet_name="Vodafone", wallet_number="0101")
        )

        assert updated.wallet_name == "Vodafone"
        assert updated.wallet_number == "0101"
        assert updated.phone == account.phone

    def test_update_to_taken_phone_rejected(self):
        service = LedgerService()
        register(service, phone="0101")
        other = register(service, phone="0102")

        with pytest.raises(ValidationError):
            service.update_account(other.id, UpdateAccountRequest(phone="0101"))

    def test_delete_account(self):
        service = LedgerService()
        account = register(service)

        service.delete_account(account.id)

        with pytest.raises(AccountNotFoundError):
            service.get_account(account.id)

    def test_lookups_of_missing_accounts_leave_no_locks(self):
        service = LedgerService()

        for _ in range(1000):
            with pytest.raises(AccountNotFoundError):
                service.get_account(uuid4())
        with pytest.raises(AccountNotFoundError):
            service.delete_account(uuid4())

        assert len(service.storage._account_locks) == 0

    def test_deleting_account_drops_its_lock(self):
        service = LedgerService()
        account = register(service)
        service.get_account(account.id)
        assert account.id in service.storage._account_locks

        service.delete_account(account.id)

        assert account.id not in service.storage._account_locks

    @pytest.mark.asyncio
    async def test_list_accounts_runs_batch(self):
        service = LedgerService()
        stale = register(service, phone="0101")
        kept = register(service, phone="0102")
        service.increase_invites_count(kept.id, 1)

        record = service.storage.get_account(stale.id)
        record.joined_at = utcnow() - timedelta(days=10)
        service.storage.save_account(record)

        accounts = await service.list_accounts()

        assert [a.id for a in accounts] == [kept.id]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
