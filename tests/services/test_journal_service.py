"""
Tests for the JournalService.

Tests cover:
- Balance validation tolerance
- Voucher creation rules and line validation
- Voucher numbering per type and fiscal year
- Posting: balance effects, atomicity, status rules
- Reversal: mirrored lines, net-zero effect, double reversal
- Draft editing, deletion, cancellation and duplication
- Statistics and voucher type listing
"""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from erp_accounting.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    ConcurrentUpdateConflict,
    InvalidLine,
    InvalidStatusTransition,
    PostingNotAllowed,
    UnbalancedEntry,
)
from erp_accounting.models.account import Account
from erp_accounting.models.enums import VoucherStatus, VoucherType
from erp_accounting.schemas.journal import (
    DuplicateVoucherRequest,
    JournalLineCreate,
    VoucherCreate,
    VoucherUpdate,
)
from erp_accounting.services.chart_service import ChartService
from erp_accounting.services.journal_service import JournalService


def debit(account, amount, description="Debit"):
    return JournalLineCreate(
        account_id=account.id, description=description, debit_amount=Decimal(amount)
    )


def credit(account, amount, description="Credit"):
    return JournalLineCreate(
        account_id=account.id, description=description, credit_amount=Decimal(amount)
    )


def make_voucher(service, lines, voucher_type=VoucherType.JOURNAL, on=date(2024, 1, 15)):
    return service.create_voucher(VoucherCreate(
        voucher_type=voucher_type,
        date=on,
        description="Test voucher",
        entries=lines,
    ))


def salary_lines(accounts, amount="35000"):
    return [
        debit(accounts["5100"], amount, "Salaries"),
        credit(accounts["1001"], amount, "Cash"),
    ]


class TestValidateBalance:

    def test_balanced_lines(self, default_accounts):
        check = JournalService.validate_balance(salary_lines(default_accounts))
        assert check.is_balanced is True
        assert check.total_debit == Decimal("35000")
        assert check.difference == Decimal("0")

    def test_difference_under_a_cent_is_balanced(self, default_accounts):
        check = JournalService.validate_balance([
            debit(default_accounts["5100"], "100.005"),
            credit(default_accounts["1001"], "100.000"),
        ])
        assert check.is_balanced is True

    def test_difference_of_a_cent_is_unbalanced(self, default_accounts):
        check = JournalService.validate_balance([
            debit(default_accounts["5100"], "100.01"),
            credit(default_accounts["1001"], "100.00"),
        ])
        assert check.is_balanced is False
        assert check.difference == Decimal("0.01")


class TestCreateVoucher:

    def test_create_voucher_is_draft(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        assert entry.status == VoucherStatus.DRAFT
        assert entry.total_debit == Decimal("35000")
        assert entry.total_credit == Decimal("35000")
        assert entry.fiscal_year == 2024
        assert entry.fiscal_period == 1
        assert entry.currency == "BDT"
        assert [line.line_number for line in entry.lines] == [1, 2]

    def test_draft_does_not_move_balances(self, db_session, default_accounts):
        make_voucher(JournalService(db_session), salary_lines(default_accounts))
        db_session.commit()

        assert default_accounts["1001"].current_balance == Decimal("0")
        assert default_accounts["5100"].current_balance == Decimal("0")

    def test_unbalanced_voucher_rejected(self, db_session, default_accounts):
        with pytest.raises(UnbalancedEntry):
            make_voucher(JournalService(db_session), [
                debit(default_accounts["5100"], "100"),
                credit(default_accounts["1001"], "90"),
            ])

    def test_amount_beyond_four_places_rejected(self):
        with pytest.raises(PydanticValidationError, match="decimal places"):
            JournalLineCreate(account_id=1, description="Fee", debit_amount=Decimal("1.00001"))

    def test_single_line_rejected(self, db_session, default_accounts):
        with pytest.raises(InvalidLine, match="at least two lines"):
            make_voucher(JournalService(db_session), [debit(default_accounts["5100"], "100")])

    def test_line_with_both_amounts_rejected(self, db_session, default_accounts):
        both = JournalLineCreate(
            account_id=default_accounts["5100"].id,
            description="Both",
            debit_amount=Decimal("50"),
            credit_amount=Decimal("50"),
        )
        with pytest.raises(InvalidLine, match="either a debit or a credit"):
            make_voucher(JournalService(db_session), [both, credit(default_accounts["1001"], "0.01")])

    def test_line_with_neither_amount_rejected(self, db_session, default_accounts):
        empty = JournalLineCreate(account_id=default_accounts["5100"].id, description="Nothing")
        with pytest.raises(InvalidLine):
            make_voucher(JournalService(db_session), [
                empty,
                debit(default_accounts["5100"], "10"),
                credit(default_accounts["1001"], "10"),
            ])

    def test_line_without_account_rejected(self, db_session, default_accounts):
        orphan = JournalLineCreate(description="No account", debit_amount=Decimal("10"))
        with pytest.raises(InvalidLine, match="no account"):
            make_voucher(JournalService(db_session), [orphan, credit(default_accounts["1001"], "10")])

    def test_line_without_description_rejected(self, db_session, default_accounts):
        blank = JournalLineCreate(
            account_id=default_accounts["5100"].id, description="  ", debit_amount=Decimal("10")
        )
        with pytest.raises(InvalidLine, match="no description"):
            make_voucher(JournalService(db_session), [blank, credit(default_accounts["1001"], "10")])

    def test_unknown_account_rejected(self, db_session, default_accounts):
        ghost = JournalLineCreate(account_id=999, description="Ghost", debit_amount=Decimal("10"))
        with pytest.raises(AccountNotFound):
            make_voucher(JournalService(db_session), [ghost, credit(default_accounts["1001"], "10")])

    def test_account_without_posting_rights_rejected(self, db_session, default_accounts):
        header = default_accounts["1100"]
        header.allow_posting = False
        db_session.commit()

        with pytest.raises(PostingNotAllowed):
            make_voucher(JournalService(db_session), [
                debit(header, "10"), credit(default_accounts["4001"], "10"),
            ])

    def test_inactive_account_rejected(self, db_session, default_accounts):
        rent = default_accounts["5200"]
        rent.is_active = False
        db_session.commit()

        with pytest.raises(PostingNotAllowed, match="not active"):
            make_voucher(JournalService(db_session), [
                debit(rent, "10"), credit(default_accounts["1001"], "10"),
            ])


class TestVoucherNumbers:

    def test_first_number_per_type_and_year(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        assert entry.voucher_number == "JV2024001"

    def test_numbers_increase(self, db_session, default_accounts):
        service = JournalService(db_session)
        first = make_voucher(service, salary_lines(default_accounts))
        second = make_voucher(service, salary_lines(default_accounts))
        assert (first.voucher_number, second.voucher_number) == ("JV2024001", "JV2024002")

    def test_counter_is_per_type(self, db_session, default_accounts):
        service = JournalService(db_session)
        make_voucher(service, salary_lines(default_accounts))
        payment = make_voucher(service, salary_lines(default_accounts), VoucherType.CASH_PAYMENT)
        assert payment.voucher_number == "CP2024001"

    def test_counter_restarts_each_fiscal_year(self, db_session, default_accounts):
        service = JournalService(db_session)
        make_voucher(service, salary_lines(default_accounts), on=date(2024, 12, 31))
        next_year = make_voucher(service, salary_lines(default_accounts), on=date(2025, 1, 1))
        assert next_year.voucher_number == "JV2025001"

    def test_counter_created_concurrently_is_reused(self, db_session, default_accounts, monkeypatch):
        service = JournalService(db_session)
        make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        # The first lookup misses the counter another transaction just committed
        real_find_sequence = service._find_sequence
        misses = {"left": 1}

        def find_sequence(voucher_type, fiscal_year):
            if misses["left"]:
                misses["left"] -= 1
                return None
            return real_find_sequence(voucher_type, fiscal_year)

        monkeypatch.setattr(service, "_find_sequence", find_sequence)

        second = make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        assert second.voucher_number == "JV2024002"
        assert misses["left"] == 0

    def test_preview_does_not_consume(self, db_session, default_accounts):
        service = JournalService(db_session)
        make_voucher(service, salary_lines(default_accounts))

        preview = service.next_voucher_number(VoucherType.JOURNAL, date(2024, 5, 1))
        again = service.next_voucher_number(VoucherType.JOURNAL, date(2024, 5, 1))
        created = make_voucher(service, salary_lines(default_accounts))

        assert preview == again == "JV2024002"
        assert created.voucher_number == preview

    def test_preview_for_unused_type(self, db_session):
        service = JournalService(db_session)
        assert service.next_voucher_number(VoucherType.OPENING, date(2024, 1, 1)) == "OB2024001"

    def test_voucher_types_list_prefixes(self):
        types = {t.value: t.prefix for t in JournalService.voucher_types()}
        assert types[VoucherType.SALES] == "SV"
        assert types[VoucherType.CLOSING] == "CB"
        assert len(types) == 10


class TestPostVoucher:

    def test_posting_moves_balances(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id, posted_by="accountant")
        db_session.commit()

        assert entry.status == VoucherStatus.POSTED
        assert entry.posted_by == "accountant"
        assert entry.posted_at is not None
        assert default_accounts["5100"].current_balance == Decimal("35000")
        assert default_accounts["1001"].current_balance == Decimal("-35000")

    def test_credit_normal_accounts_grow_with_credits(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, [
            debit(default_accounts["1001"], "1200", "Cash sale"),
            credit(default_accounts["4001"], "1200", "Sales"),
        ])
        service.post_voucher(entry.id)
        db_session.commit()

        assert default_accounts["1001"].current_balance == Decimal("1200")
        assert default_accounts["4001"].current_balance == Decimal("1200")

    def test_cannot_post_twice(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id)
        db_session.commit()

        with pytest.raises(InvalidStatusTransition):
            service.post_voucher(entry.id)

    def test_posting_rechecks_accounts(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        default_accounts["5100"].is_active = False
        db_session.commit()

        with pytest.raises(PostingNotAllowed):
            service.post_voucher(entry.id)
        db_session.rollback()

        assert default_accounts["1001"].current_balance == Decimal("0")
        assert entry.status == VoucherStatus.DRAFT

    def _record_balance_updates(self, service, monkeypatch):
        real_update_balance = service.chart.update_balance
        calls = []

        def recording_update_balance(account_id, amount, is_debit):
            calls.append((account_id, amount, is_debit))
            return real_update_balance(account_id, amount, is_debit)

        monkeypatch.setattr(service.chart, "update_balance", recording_update_balance)
        return calls

    def test_balances_applied_in_account_id_order(self, db_session, default_accounts, monkeypatch):
        service = JournalService(db_session)
        low, high = sorted(
            [default_accounts["1001"], default_accounts["5100"]], key=lambda a: a.id
        )
        # Higher account id on the first line
        entry = make_voucher(service, [debit(high, "500"), credit(low, "500")])
        calls = self._record_balance_updates(service, monkeypatch)

        service.post_voucher(entry.id)

        assert [account_id for account_id, _, _ in calls] == [low.id, high.id]

    def test_lines_on_one_account_are_netted(self, db_session, default_accounts, monkeypatch):
        service = JournalService(db_session)
        salaries = default_accounts["5100"]
        cash = default_accounts["1001"]
        entry = make_voucher(service, [
            debit(salaries, "100", "Gross pay"),
            credit(cash, "60", "Net pay"),
            credit(salaries, "40", "Deduction"),
        ])
        calls = self._record_balance_updates(service, monkeypatch)

        service.post_voucher(entry.id)
        db_session.commit()

        assert sorted(calls) == sorted([
            (salaries.id, Decimal("60"), True),
            (cash.id, Decimal("60"), False),
        ])
        assert salaries.current_balance == Decimal("60")
        assert cash.current_balance == Decimal("-60")

    def test_account_netting_to_zero_is_untouched(self, db_session, default_accounts, monkeypatch):
        service = JournalService(db_session)
        cash = default_accounts["1001"]
        entry = make_voucher(service, [
            debit(cash, "25", "Deposit"),
            credit(cash, "25", "Withdrawal"),
        ])
        version_before = cash.version
        calls = self._record_balance_updates(service, monkeypatch)

        service.post_voucher(entry.id)

        assert calls == []
        assert cash.version == version_before
        assert entry.status == VoucherStatus.POSTED

    def test_failed_posting_leaves_no_partial_effect(self, db_session, default_accounts, monkeypatch):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        real_update_balance = service.chart.update_balance
        calls = {"count": 0}

        def flaky_update_balance(account_id, amount, is_debit):
            calls["count"] += 1
            if calls["count"] == 2:
                raise ConcurrentUpdateConflict("lost race")
            return real_update_balance(account_id, amount, is_debit)

        monkeypatch.setattr(service.chart, "update_balance", flaky_update_balance)

        with pytest.raises(ConcurrentUpdateConflict):
            service.post_voucher(entry.id)
        db_session.rollback()

        assert default_accounts["5100"].current_balance == Decimal("0")
        assert default_accounts["1001"].current_balance == Decimal("0")
        assert entry.status == VoucherStatus.DRAFT


class TestReverseVoucher:

    def _posted(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id)
        db_session.commit()
        return service, entry

    def test_reversal_mirrors_lines(self, db_session, default_accounts):
        service, entry = self._posted(db_session, default_accounts)

        original, reversal = service.reverse_voucher(entry.id, "Posted in error", user="controller")
        db_session.commit()

        assert original.status == VoucherStatus.REVERSED
        assert original.reversed_by_id == reversal.id
        assert reversal.status == VoucherStatus.POSTED
        assert reversal.reversal_of_id == original.id
        assert reversal.voucher_type == original.voucher_type
        assert reversal.description == f"Reversal of {original.voucher_number}: Posted in error"
        assert reversal.lines[0].description == "Reversal: Salaries"
        assert reversal.lines[0].credit_amount == Decimal("35000")
        assert reversal.lines[1].debit_amount == Decimal("35000")

    def test_reversal_nets_balances_to_zero(self, db_session, default_accounts):
        service, entry = self._posted(db_session, default_accounts)

        service.reverse_voucher(entry.id, "Posted in error")
        db_session.commit()

        assert default_accounts["5100"].current_balance == Decimal("0")
        assert default_accounts["1001"].current_balance == Decimal("0")
        assert ChartService(db_session).balance_anomalies() == []

    def test_second_reversal_rejected(self, db_session, default_accounts):
        service, entry = self._posted(db_session, default_accounts)
        service.reverse_voucher(entry.id, "Posted in error")
        db_session.commit()

        with pytest.raises(AlreadyReversed):
            service.reverse_voucher(entry.id, "Again")

    def test_draft_cannot_be_reversed(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))

        with pytest.raises(InvalidStatusTransition):
            service.reverse_voucher(entry.id, "Not posted")

    def test_reversal_can_itself_be_reversed(self, db_session, default_accounts):
        service, entry = self._posted(db_session, default_accounts)
        _, reversal = service.reverse_voucher(entry.id, "Posted in error")
        db_session.commit()

        _, restored = service.reverse_voucher(reversal.id, "Reversal was wrong")
        db_session.commit()

        assert restored.reversal_of_id == reversal.id
        assert default_accounts["5100"].current_balance == Decimal("35000")


class TestDraftLifecycle:

    def test_update_replaces_lines(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))

        service.update_voucher(entry.id, VoucherUpdate(
            description="Corrected salaries",
            date=date(2024, 2, 29),
            entries=salary_lines(default_accounts, "36000"),
        ))
        db_session.commit()

        assert entry.description == "Corrected salaries"
        assert entry.fiscal_period == 2
        assert entry.total_debit == Decimal("36000")
        assert len(entry.lines) == 2

    def test_moving_to_another_year_renumbers(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts), on=date(2024, 12, 30))
        assert entry.voucher_number == "JV2024001"

        service.update_voucher(entry.id, VoucherUpdate(date=date(2025, 1, 10)))
        db_session.commit()

        assert entry.voucher_number == "JV2025001"
        assert (entry.fiscal_year, entry.fiscal_period) == (2025, 1)
        assert service.next_voucher_number(VoucherType.JOURNAL, date(2025, 3, 1)) == "JV2025002"

    def test_date_change_within_year_keeps_number(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))

        service.update_voucher(entry.id, VoucherUpdate(date=date(2024, 6, 1)))

        assert entry.voucher_number == "JV2024001"
        assert entry.fiscal_period == 6

    def test_update_revalidates_lines(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))

        with pytest.raises(UnbalancedEntry):
            service.update_voucher(entry.id, VoucherUpdate(entries=[
                debit(default_accounts["5100"], "10"),
                credit(default_accounts["1001"], "20"),
            ]))

    def test_posted_voucher_cannot_be_edited(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id)

        with pytest.raises(InvalidStatusTransition):
            service.update_voucher(entry.id, VoucherUpdate(description="Sneaky edit"))

    def test_delete_draft(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        service.delete_voucher(entry.id)
        db_session.commit()

        assert service.list_vouchers()[1] == 0

    def test_posted_voucher_cannot_be_deleted(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id)

        with pytest.raises(InvalidStatusTransition):
            service.delete_voucher(entry.id)

    def test_cancel_draft_appends_reason(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))

        service.cancel_voucher(entry.id, "Duplicate of payroll run")

        assert entry.status == VoucherStatus.CANCELLED
        assert "Cancelled: Duplicate of payroll run" in entry.notes
        assert default_accounts["1001"].current_balance == Decimal("0")

    def test_cancelled_voucher_cannot_be_posted(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.cancel_voucher(entry.id, "Not needed")

        with pytest.raises(InvalidStatusTransition):
            service.post_voucher(entry.id)

    def test_duplicate_creates_new_draft(self, db_session, default_accounts):
        service = JournalService(db_session)
        entry = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(entry.id)

        copy = service.duplicate_voucher(entry.id, DuplicateVoucherRequest(reference_number="FEB"))
        db_session.commit()

        assert copy.id != entry.id
        assert copy.status == VoucherStatus.DRAFT
        assert copy.date == date.today()
        assert copy.reference_number == "FEB"
        assert copy.description == "Copy of Test voucher"
        assert copy.total_debit == entry.total_debit
        assert [line.description for line in copy.lines] == ["Salaries", "Cash"]


class TestListingAndStatistics:

    def test_list_filters_by_status(self, db_session, default_accounts):
        service = JournalService(db_session)
        posted = make_voucher(service, salary_lines(default_accounts))
        service.post_voucher(posted.id)
        make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        items, total = service.list_vouchers(status=VoucherStatus.POSTED)

        assert total == 1
        assert items[0].id == posted.id

    def test_list_pages(self, db_session, default_accounts):
        service = JournalService(db_session)
        for _ in range(3):
            make_voucher(service, salary_lines(default_accounts))
        db_session.commit()

        items, total = service.list_vouchers(page=2, limit=2)

        assert total == 3
        assert len(items) == 1
        assert service.page_count(total, 2) == 2

    def test_statistics(self, db_session, default_accounts):
        service = JournalService(db_session)
        posted = make_voucher(service, salary_lines(default_accounts, "300"))
        service.post_voucher(posted.id)
        make_voucher(service, salary_lines(default_accounts, "100"), VoucherType.CASH_PAYMENT)
        db_session.commit()

        stats = service.voucher_statistics()

        assert stats.total_entries == 2
        assert stats.total_debits == Decimal("400")
        assert stats.average_amount == Decimal("200")
        statuses = {row.key: row.count for row in stats.status_breakdown}
        assert statuses == {"DRAFT": 1, "POSTED": 1}
        types = {row.key: row.total_amount for row in stats.voucher_type_breakdown}
        assert types == {"CASH_PAYMENT": Decimal("100"), "JOURNAL": Decimal("300")}

    def test_statistics_on_empty_ledger(self, db_session):
        stats = JournalService(db_session).voucher_statistics()
        assert stats.total_entries == 0
        assert stats.average_amount == Decimal("0")


def test_balance_invariant_after_mixed_activity(db_session, default_accounts):
    """Cached balances always equal the sum of posted lines."""
    service = JournalService(db_session)
    first = make_voucher(service, salary_lines(default_accounts))
    service.post_voucher(first.id)
    second = make_voucher(service, [
        debit(default_accounts["1002"], "5000", "Deposit"),
        credit(default_accounts["3001"], "5000", "Capital"),
    ])
    service.post_voucher(second.id)
    make_voucher(service, salary_lines(default_accounts, "999"))
    service.reverse_voucher(first.id, "Wrong month")
    db_session.commit()

    assert ChartService(db_session).balance_anomalies() == []
    bank = db_session.get(Account, default_accounts["1002"].id)
    assert bank.current_balance == Decimal("5000")
