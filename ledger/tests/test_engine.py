"""
Unit Tests for the Balance Recomputation Engine

Tests cover:
1. Closed-form balance formula
2. Which deposits and withdrawals count
3. Idempotence and snapshot isolation
4. Failure on invalid product data
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from ledger.engine import SIGNUP_BONUS, balance_breakdown, recompute_account
from ledger.exceptions import ValidationError
from ledger.models import Account, Deposit, Product, TransactionStatus, Withdrawal


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_product(days_ago: int = 0, price: str = "100", rate: str = "0.10", **overrides) -> Product:
    data = {
        "name": "Signup bonus",
        "start": NOW - timedelta(days=days_ago),
        "price": Decimal(price),
        "rate": Decimal(rate),
        "total_profit": Decimal("3600"),
        "total_percentage": Decimal("36"),
        "period": 360,
    }
    data.update(overrides)
    return Product(**data)


def make_account(**overrides) -> Account:
    data = {"phone": "01000000000", "products": [make_product()]}
    data.update(overrides)
    return Account(**data)


class TestBalanceScenarios:
    """Tests for the documented balance scenarios."""

    def test_single_product_after_ten_days(self):
        """100 profit - 100 price + 120 bonus = 120."""
        account = make_account(products=[make_product(days_ago=10)])

        updated = recompute_account(account, NOW)

        assert updated.products[0].accrued_profit == Decimal("100")
        assert updated.daily_profit == Decimal("100")
        assert updated.balance == Decimal("120")

    def test_deposit_and_pending_withdrawal(self):
        """500 deposit - 200 pending withdrawal - 100 price + 120 bonus = 320."""
        account = make_account(
            deposits=[Deposit(amount=Decimal("500"), source="a", destination="b", status=TransactionStatus.SUCCESS)],
            withdrawals=[Withdrawal(amount=Decimal("200"))],
        )

        updated = recompute_account(account, NOW)

        assert updated.daily_profit == 0
        assert updated.balance == Decimal("320")

    def test_fresh_account_balance(self):
        updated = recompute_account(make_account(), NOW)

        assert updated.balance == SIGNUP_BONUS - Decimal("100")


class TestTransactionFiltering:
    """Tests for which transactions count toward the balance."""

    def test_only_successful_deposits_count(self):
        account = make_account(deposits=[
            Deposit(amount=Decimal("10"), source="a", destination="b", status=TransactionStatus.PENDING),
            Deposit(amount=Decimal("20"), source="a", destination="b", status=TransactionStatus.SUCCESS),
            Deposit(amount=Decimal("40"), source="a", destination="b", status=TransactionStatus.FAILED),
        ])

        breakdown = balance_breakdown(recompute_account(account, NOW))

        assert breakdown.deposits_total == Decimal("20")

    def test_failed_withdrawals_are_excluded(self):
        account = make_account(withdrawals=[
            Withdrawal(amount=Decimal("10"), status=TransactionStatus.PENDING),
            Withdrawal(amount=Decimal("20"), status=TransactionStatus.SUCCESS),
            Withdrawal(amount=Decimal("40"), status=TransactionStatus.FAILED),
        ])

        breakdown = balance_breakdown(recompute_account(account, NOW))

        assert breakdown.withdrawals_total == Decimal("30")

    def test_invites_profit_is_added(self):
        account = make_account(invites_profit=Decimal("55"))

        updated = recompute_account(account, NOW)

        assert updated.balance == Decimal("75")
        assert updated.invites_profit == Decimal("55")


class TestClosedForm:
    """Tests that the balance equals the closed-form formula."""

    def test_balance_matches_formula(self):
        account = make_account(
            products=[
                make_product(days_ago=3),
                make_product(days_ago=12, price="1000", rate="0.05"),
                make_product(days_ago=1, price="250", rate="0.02"),
            ],
            deposits=[
                Deposit(amount=Decimal("1500"), source="a", destination="b", status=TransactionStatus.SUCCESS),
                Deposit(amount=Decimal("99"), source="a", destination="b"),
            ],
            withdrawals=[
                Withdrawal(amount=Decimal("75"), status=TransactionStatus.SUCCESS),
                Withdrawal(amount=Decimal("30")),
                Withdrawal(amount=Decimal("500"), status=TransactionStatus.FAILED),
            ],
            invites_profit=Decimal("40"),
        )

        updated = recompute_account(account, NOW)

        # profits: 100*0.10*3 + 1000*0.05*12 + 250*0.02*1 = 30 + 600 + 5
        profit = Decimal("635")
        expected = Decimal("1500") + profit - Decimal("105") - Decimal("1350") + SIGNUP_BONUS + Decimal("40")
        assert updated.daily_profit == profit
        assert updated.balance == expected
        assert balance_breakdown(updated).balance == expected


class TestRecomputeSemantics:
    """Tests for idempotence and isolation."""

    def test_recompute_is_idempotent(self):
        account = make_account(products=[make_product(days_ago=9)])

        once = recompute_account(account, NOW)
        twice = recompute_account(once, NOW)

        assert once == twice

    def test_input_is_not_mutated(self):
        account = make_account(products=[make_product(days_ago=9)])

        updated = recompute_account(account, NOW)

        assert updated is not account
        assert account.balance == 0
        assert account.products[0].accrued_profit == 0
        assert updated.last_balance_update == NOW

    def test_only_derived_fields_change(self):
        account = make_account(name="Sara", invites_count=3, wallet_number="0100")

        updated = recompute_account(account, NOW)

        unchanged = {"balance", "daily_profit", "last_balance_update", "products"}
        assert updated.model_dump(exclude=unchanged) == account.model_dump(exclude=unchanged)

    def test_invalid_product_aborts_whole_account(self):
        account = make_account(products=[
            make_product(days_ago=5),
            make_product(days_ago=5, total_profit=Decimal("0")),
        ])

        with pytest.raises(ValidationError):
            recompute_account(account, NOW)

        # first product was not refreshed on the caller's snapshot
        assert account.products[0].accrued_profit == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
