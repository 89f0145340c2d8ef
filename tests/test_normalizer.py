"""Tests for the record normalizer."""

import pytest
from datetime import date
from decimal import Decimal

from fintrack.models import (
    ASSET_ACCOUNT_TYPES,
    Account,
    AccountType,
    Category,
    CategoryType,
    TransactionType,
)
from fintrack.services.normalization import (
    RecordNormalizer,
    index_by_id,
    parse_date,
    parse_decimal,
)


@pytest.fixture
def normalizer():
    return RecordNormalizer()


class TestPrimitives:
    """Tests for lenient number and date parsing."""

    @pytest.mark.parametrize("raw, expected", [
        (12, Decimal("12")),
        (12.5, Decimal("12.5")),
        ("1,234.50", Decimal("1234.50")),
        ("$99", Decimal("99")),
        ("(12.34)", Decimal("-12.34")),
        ("-7", Decimal("-7")),
    ])
    def test_parse_decimal(self, raw, expected):
        """Test accepted number formats."""
        assert parse_decimal(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc", "NaN", float("inf"), True, [], {}, "9e999999", "1e-999999", 1e300])
    def test_parse_decimal_rejects(self, raw):
        """Test unparsable or non-finite values yield None."""
        assert parse_decimal(raw) is None

    @pytest.mark.parametrize("raw, expected", [
        ("2024-03-15", date(2024, 3, 15)),
        ("2024-03-15T23:10:00.000Z", date(2024, 3, 15)),
        ("03/15/2024", date(2024, 3, 15)),
        (date(2024, 3, 15), date(2024, 3, 15)),
    ])
    def test_parse_date(self, raw, expected):
        """Test accepted date formats."""
        assert parse_date(raw) == expected

    def test_parse_decimal_extreme_zero(self):
        """Test a zero with an absurd exponent is still zero."""
        assert parse_decimal("0e-999999") == Decimal("0")

    @pytest.mark.parametrize("raw", [None, "", "yesterday", "2024-13-45", 20240315])
    def test_parse_date_rejects(self, raw):
        """Test invalid dates yield None."""
        assert parse_date(raw) is None


class TestAccountNormalization:
    """Tests for account field synonyms."""

    def test_snake_case(self, normalizer):
        """Test snake_case backend fields."""
        account = normalizer.normalize_account({
            "account_id": 3,
            "account_name": "Everyday",
            "account_type": "CHECKING",
            "current_balance": "1,200.00",
        })
        assert account.id == 3
        assert account.name == "Everyday"
        assert account.account_type == AccountType.CHECKING
        assert account.balance == Decimal("1200.00")
        assert account.is_asset

    def test_camel_case(self, normalizer):
        """Test camelCase backend fields."""
        account = normalizer.normalize_account({
            "id": "a-1",
            "accountName": "Visa",
            "accountType": "Credit Card",
            "balance": -50,
        })
        assert account.id == "a-1"
        assert account.account_type == AccountType.CREDIT
        assert account.balance == Decimal("-50")
        assert not account.is_asset

    def test_explicit_asset_flag_wins(self, normalizer):
        """Test isAsset overrides the type-based default."""
        account = normalizer.normalize_account({"balance": 100, "isAsset": False, "type": "savings"})
        assert not account.is_asset

    def test_first_present_synonym_wins(self, normalizer):
        """Test current_balance is preferred over balance, skipping nulls."""
        assert normalizer.normalize_account({"current_balance": None, "balance": 5}).balance == Decimal("5")
        assert normalizer.normalize_account({"current_balance": 7, "balance": 5}).balance == Decimal("7")

    def test_unparsable_balance_kept_for_display(self, normalizer):
        """Test an unparsable balance counts as 0 and keeps its raw text."""
        account = normalizer.normalize_account({"balance": "n/a"})
        assert account.balance == Decimal("0")
        assert account.balance_display == "n/a"

    def test_huge_balance_kept_for_display(self, normalizer):
        """Test an out-of-range balance counts as 0 and keeps its raw text."""
        account = normalizer.normalize_account({"balance": "9e999999"})
        assert account.balance == Decimal("0")
        assert account.balance_display == "9e999999"

    @pytest.mark.parametrize("account_type", list(AccountType))
    def test_asset_default_follows_type(self, normalizer, account_type):
        """Test only credit accounts default to liabilities."""
        account = normalizer.normalize_account({"type": account_type.value})
        assert account.is_asset == (account_type in ASSET_ACCOUNT_TYPES)
        assert account.is_asset == (account_type != AccountType.CREDIT)

    def test_unknown_type_is_other(self, normalizer):
        """Test unrecognized account types fall back to other."""
        assert normalizer.normalize_account({"type": "crypto wallet"}).account_type == AccountType.OTHER

    def test_nested_type_object(self, normalizer):
        """Test {type: {name: ...}} shapes."""
        account = normalizer.normalize_account({"accountType": {"id": 2, "name": "Savings"}})
        assert account.account_type == AccountType.SAVINGS


class TestTransactionNormalization:
    """Tests for transaction normalization and reference resolution."""

    def test_fields_and_absolute_amount(self, normalizer):
        """Test amount is made unsigned and type lower-cased."""
        txn = normalizer.normalize_transaction({
            "transactionId": 10,
            "transactionType": "EXPENSE",
            "amount": "-25.50",
            "transactionDate": "2024-03-02T10:00:00Z",
            "description": "Lunch",
        })
        assert txn.id == 10
        assert txn.transaction_type == TransactionType.EXPENSE
        assert txn.amount == Decimal("25.50")
        assert txn.transaction_date == date(2024, 3, 2)

    def test_invalid_date_kept_for_display(self, normalizer):
        """Test an invalid date becomes None and keeps its raw text."""
        txn = normalizer.normalize_transaction({"type": "income", "amount": 5, "date": "someday"})
        assert txn.transaction_date is None
        assert txn.date_display == "someday"

    def test_unknown_type_is_none(self, normalizer):
        """Test unrecognized types count as neither income nor expense."""
        txn = normalizer.normalize_transaction({"type": "refund", "amount": 5})
        assert txn.transaction_type is None
        assert not txn.is_income
        assert not txn.is_expense

    def test_resolves_names_from_collections(self, normalizer):
        """Test account and category names are looked up by id."""
        accounts = index_by_id([Account(id=1, name="Main")])
        categories = index_by_id([Category(id="9", name="Groceries")])
        txn = normalizer.normalize_transaction(
            {"accountId": "1", "categoryId": 9, "type": "expense", "amount": 3},
            accounts,
            categories,
        )
        assert txn.account_name == "Main"
        assert txn.category_name == "Groceries"

    def test_unknown_category_gets_placeholder(self, normalizer):
        """Test a missing category resolves to Uncategorized, not an error."""
        txn = normalizer.normalize_transaction(
            {"categoryId": 404, "accountId": 404, "type": "expense", "amount": 3},
            {},
            index_by_id([Category(id=9, name="Groceries")]),
        )
        assert txn.category_name is None
        assert txn.category_label == "Uncategorized"
        assert txn.account_label == "Unknown Account"

    def test_nested_references(self, normalizer):
        """Test {category: {id, name}} and {account: {id, name}} shapes."""
        txn = normalizer.normalize_transaction({
            "category": {"id": 4, "name": "Rent"},
            "account": {"id": 2, "name": "Joint"},
            "amount": 900,
        })
        assert txn.category_id == 4
        assert txn.category_name == "Rent"
        assert txn.account_id == 2
        assert txn.account_name == "Joint"

    def test_explicit_name_beats_lookup(self, normalizer):
        """Test a name sent by the backend is kept."""
        txn = normalizer.normalize_transaction(
            {"category_id": 9, "category_name": "Food", "amount": 1},
            categories=index_by_id([Category(id=9, name="Groceries")]),
        )
        assert txn.category_name == "Food"


class TestOtherRecords:
    """Tests for categories, budgets, transfers and users."""

    def test_category(self, normalizer):
        """Test category type is read case-insensitively."""
        category = normalizer.normalize_category({"category_id": 9, "categoryName": "Groceries", "type": "EXPENSE"})
        assert category.name == "Groceries"
        assert category.category_type == CategoryType.EXPENSE

    def test_budget(self, normalizer):
        """Test budget synonyms and dates."""
        budget = normalizer.normalize_budget({
            "budgetId": 1,
            "budgetName": "March",
            "startDate": "2024-03-01",
            "endDate": "2024-03-31",
            "totalLimit": "400",
            "totalSpent": 120,
        })
        assert budget.name == "March"
        assert budget.total_limit == Decimal("400")
        assert budget.total_spent == Decimal("120")
        assert budget.start_date == date(2024, 3, 1)

    def test_budget_spent_missing_vs_unparsable(self, normalizer):
        """Test missing spent stays None while a garbled one counts as 0."""
        assert normalizer.normalize_budget({"limit": 10}).total_spent is None
        garbled = normalizer.normalize_budget({"limit": 10, "spent": "??"})
        assert garbled.total_spent == Decimal("0")
        assert garbled.total_spent_display == "??"

    def test_transfer(self, normalizer):
        """Test transfer references and fee."""
        transfer = normalizer.normalize_transfer({
            "transferId": 5,
            "fromAccountId": 1,
            "toUserId": 8,
            "amount": "50",
            "feeAmount": "1.5",
            "transferDate": "2024-03-03",
        })
        assert transfer.from_account_id == 1
        assert transfer.to_user_id == 8
        assert transfer.total_debit == Decimal("51.5")

    def test_user(self, normalizer):
        """Test user names in camelCase."""
        user = normalizer.normalize_user({"userId": 2, "username": "ada", "firstName": "Ada"})
        assert user.id == 2
        assert user.first_name == "Ada"


class TestCollections:
    """Tests for collection handling and idempotence."""

    def test_skips_non_mappings(self, normalizer):
        """Test junk entries in a list are skipped."""
        accounts = normalizer.normalize_accounts([{"id": 1}, None, "x", 3, {"id": 2}])
        assert [a.id for a in accounts] == [1, 2]

    def test_non_list_yields_empty(self, normalizer):
        """Test a non-list collection yields nothing."""
        assert normalizer.normalize_transactions({"id": 1}) == []

    def test_odd_ids_are_stringified(self, normalizer):
        """Test ids that are neither int nor str never break normalization."""
        assert normalizer.normalize_account({"id": 1.5}).id == "1.5"

    @pytest.mark.parametrize("raw", [
        {"account_id": 1, "accountName": "Main", "type": "savings", "current_balance": "10.5"},
        {"balance": "n/a"},
        {},
    ])
    def test_account_idempotent(self, normalizer, raw):
        """Test normalizing a normalized account changes nothing."""
        once = normalizer.normalize_account(raw)
        assert normalizer.normalize_account(once) == once

    @pytest.mark.parametrize("raw", [
        {"id": 1, "type": "EXPENSE", "amount": "-3", "date": "2024-03-01", "categoryName": "Food"},
        {"type": "refund", "amount": "abc", "date": "bad"},
    ])
    def test_transaction_idempotent(self, normalizer, raw):
        """Test normalizing a normalized transaction changes nothing."""
        once = normalizer.normalize_transaction(raw)
        assert normalizer.normalize_transaction(once) == once

    def test_budget_idempotent(self, normalizer):
        """Test normalizing a normalized budget changes nothing."""
        once = normalizer.normalize_budget({"name": "B", "limit": "100", "spent": 20, "startDate": "2024-01-01"})
        assert normalizer.normalize_budget(once) == once

    def test_renormalizing_resolves_names(self, normalizer):
        """Test canonical transactions pick up names from collections later."""
        transactions = normalizer.normalize_transactions([{"accountId": 1, "amount": 5}])
        resolved = normalizer.normalize_transactions(transactions, [Account(id=1, name="Main")])
        assert resolved[0].account_name == "Main"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
