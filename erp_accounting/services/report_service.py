"""
Reporting service.

Read-only aggregation over posted vouchers: general ledger,
trial balance, accounting equation and the two financial
statements. Balances are always recomputed from journal lines
(plus each account's opening balance); the cached
current_balance is never trusted here and never corrected.
"""

import logging
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_accounting.models.account import Account, net_balance
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
)
from erp_accounting.models.journal_entry import (
    BALANCE_EPSILON,
    JournalEntry,
    JournalLine,
)
from erp_accounting.schemas.report import (
    AccountingEquation,
    AccountRef,
    BalanceSheet,
    GeneralLedger,
    GeneralLedgerSummary,
    IncomeStatement,
    LedgerLine,
    LedgerSummaryRow,
    Period,
    ProfitLoss,
    StatementLine,
    StatementSection,
    TrialBalance,
    TrialBalanceRow,
    TrialBalanceSummary,
    TypeSubtotal,
)
from erp_accounting.services.chart_service import ChartService
from erp_accounting.services.ledger_queries import (
    POSTED_STATUSES,
    ZERO_TOTALS,
    LineTotals,
    posted_line_totals,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

ACCOUNT_TYPE_ORDER = [
    AccountType.ASSET,
    AccountType.LIABILITY,
    AccountType.EQUITY,
    AccountType.REVENUE,
    AccountType.EXPENSE,
]

CATEGORY_ORDER = list(AccountCategory)


class ReportService:

    def __init__(self, db: Session):
        self.db = db

    def _accounts(self, active_only: bool = True) -> list[Account]:
        query = select(Account)
        if active_only:
            query = query.where(Account.is_active.is_(True))
        return list(
            self.db.execute(query.order_by(Account.account_code)).scalars().all()
        )

    @staticmethod
    def _balance(account: Account, totals: LineTotals) -> Decimal:
        return account.opening_balance + net_balance(
            account.normal_balance, totals.debit, totals.credit
        )

    # --- General ledger ---

    def general_ledger(
        self,
        account_id: int,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> GeneralLedger:
        """
        Posted lines of one account in a date range, with a running balance.

        The opening balance is everything posted before date_from.
        """
        account = ChartService(self.db).get_account(account_id)

        opening_balance = account.opening_balance
        if date_from is not None:
            before = posted_line_totals(self.db, before=date_from).get(
                account.id, ZERO_TOTALS
            )
            opening_balance = self._balance(account, before)

        query = (
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalLine.account_id == account.id,
                JournalEntry.status.in_(POSTED_STATUSES),
            )
            .order_by(
                JournalEntry.date,
                JournalEntry.voucher_number,
                JournalLine.line_number,
            )
        )
        if date_from is not None:
            query = query.where(JournalEntry.date >= date_from)
        if date_to is not None:
            query = query.where(JournalEntry.date <= date_to)

        running = opening_balance
        total_debits = ZERO
        total_credits = ZERO
        entries = []
        for line, voucher in self.db.execute(query).all():
            running += net_balance(
                account.normal_balance, line.debit_amount, line.credit_amount
            )
            total_debits += line.debit_amount
            total_credits += line.credit_amount
            entries.append(LedgerLine(
                date=voucher.date,
                voucher_id=voucher.id,
                voucher_number=voucher.voucher_number,
                voucher_type=voucher.voucher_type,
                description=voucher.description,
                entry_description=line.description,
                reference_number=voucher.reference_number,
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                balance=running,
                department=line.department,
                project=line.project,
                cost_center=line.cost_center,
            ))

        return GeneralLedger(
            account=AccountRef.model_validate(account),
            period=Period(date_from=date_from, date_to=date_to),
            opening_balance=opening_balance,
            entries=entries,
            total_debits=total_debits,
            total_credits=total_credits,
            closing_balance=running,
            transaction_count=len(entries),
        )

    def general_ledger_summary(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> GeneralLedgerSummary:
        """
        Opening, movement and closing for every account.

        Deactivated accounts are listed too: their posted history
        still belongs to the period.
        """
        before = posted_line_totals(self.db, before=date_from) if date_from else {}
        movement = posted_line_totals(self.db, date_from=date_from, date_to=date_to)

        rows = []
        for account in self._accounts(active_only=False):
            opening_totals = before.get(account.id, ZERO_TOTALS)
            period_totals = movement.get(account.id, ZERO_TOTALS)
            opening_balance = self._balance(account, opening_totals)
            rows.append(LedgerSummaryRow(
                account=AccountRef.model_validate(account),
                opening_balance=opening_balance,
                total_debits=period_totals.debit,
                total_credits=period_totals.credit,
                closing_balance=opening_balance + net_balance(
                    account.normal_balance, period_totals.debit, period_totals.credit
                ),
                transaction_count=period_totals.count,
            ))

        return GeneralLedgerSummary(
            period=Period(date_from=date_from, date_to=date_to), accounts=rows
        )

    # --- Trial balance ---

    def trial_balance(
        self,
        as_of_date: date | None = None,
        include_zero_balances: bool = False,
    ) -> TrialBalance:
        """
        Trial balance of every active account as of a date.

        A net debit position lands in the debit column and a net
        credit position in the credit column, whatever the
        account's normal side. An imbalance is reported, logged and
        left alone.
        """
        as_of = as_of_date or date.today()
        totals = posted_line_totals(self.db, date_to=as_of)

        rows: list[TrialBalanceRow] = []
        for account in self._accounts():
            line_totals = totals.get(account.id, ZERO_TOTALS)
            balance = self._balance(account, line_totals)
            if not include_zero_balances and line_totals.count == 0 and balance == 0:
                continue

            # Balance expressed as debit minus credit
            debit_position = balance if account.normal_balance == NormalBalance.DEBIT else -balance
            rows.append(TrialBalanceRow(
                account_id=account.id,
                account_code=account.account_code,
                account_name=account.account_name,
                account_type=account.account_type,
                account_category=account.account_category,
                normal_balance=account.normal_balance,
                debit_total=line_totals.debit,
                credit_total=line_totals.credit,
                debit_balance=debit_position if debit_position > 0 else ZERO,
                credit_balance=-debit_position if debit_position < 0 else ZERO,
                net_balance=balance,
                transaction_count=line_totals.count,
            ))

        subtotals = []
        for account_type in ACCOUNT_TYPE_ORDER:
            of_type = [r for r in rows if r.account_type == account_type]
            if not of_type:
                continue
            subtotals.append(TypeSubtotal(
                account_type=account_type,
                debit_total=sum((r.debit_balance for r in of_type), ZERO),
                credit_total=sum((r.credit_balance for r in of_type), ZERO),
                net_balance=sum((r.net_balance for r in of_type), ZERO),
                count=len(of_type),
            ))

        total_debits = sum((r.debit_balance for r in rows), ZERO)
        total_credits = sum((r.credit_balance for r in rows), ZERO)
        difference = total_debits - total_credits
        summary = TrialBalanceSummary(
            total_debits=total_debits,
            total_credits=total_credits,
            difference=difference,
            is_balanced=abs(difference) < BALANCE_EPSILON,
            total_accounts=len(rows),
            as_of_date=as_of,
            generated_at=datetime.utcnow(),
        )
        if not summary.is_balanced:
            logger.warning(
                "Trial balance as of %s is out by %s", as_of, difference,
                extra={"total_debits": str(total_debits), "total_credits": str(total_credits)},
            )

        by_type = self._balances_by_type(as_of)
        return TrialBalance(
            accounts=rows,
            subtotals=subtotals,
            summary=summary,
            accounting_equation=self._equation(as_of, by_type),
            profit_loss=ProfitLoss(
                revenue=by_type[AccountType.REVENUE],
                expenses=by_type[AccountType.EXPENSE],
                net_income=by_type[AccountType.REVENUE] - by_type[AccountType.EXPENSE],
            ),
        )

    # --- Accounting equation ---

    def _balances_by_type(self, as_of: date) -> dict[AccountType, Decimal]:
        """Net balance per account type over every account, active or not."""
        totals = posted_line_totals(self.db, date_to=as_of)
        by_type: dict[AccountType, Decimal] = defaultdict(lambda: ZERO)
        for account in self._accounts(active_only=False):
            by_type[account.account_type] += self._balance(
                account, totals.get(account.id, ZERO_TOTALS)
            )
        return by_type

    @staticmethod
    def _equation(as_of: date, by_type: dict[AccountType, Decimal]) -> AccountingEquation:
        assets = by_type[AccountType.ASSET]
        liabilities = by_type[AccountType.LIABILITY]
        equity = by_type[AccountType.EQUITY]
        current_earnings = by_type[AccountType.REVENUE] - by_type[AccountType.EXPENSE]
        right_side = liabilities + equity + current_earnings
        difference = assets - right_side
        return AccountingEquation(
            as_of_date=as_of,
            assets=assets,
            liabilities=liabilities,
            equity=equity,
            current_earnings=current_earnings,
            liabilities_and_equity=right_side,
            difference=difference,
            is_balanced=abs(difference) < BALANCE_EPSILON,
        )

    def accounting_equation_check(self, as_of_date: date | None = None) -> AccountingEquation:
        """Assets = Liabilities + Equity + current earnings, within 0.01."""
        as_of = as_of_date or date.today()
        equation = self._equation(as_of, self._balances_by_type(as_of))
        if not equation.is_balanced:
            logger.warning(
                "Accounting equation out by %s as of %s", equation.difference, as_of
            )
        return equation

    # --- Financial statements ---

    @staticmethod
    def _sections(
        amounts: list[tuple[Account, Decimal]]
    ) -> tuple[list[StatementSection], Decimal]:
        grouped: dict[AccountCategory, list[StatementLine]] = defaultdict(list)
        for account, amount in amounts:
            grouped[account.account_category].append(StatementLine(
                account_id=account.id,
                account_code=account.account_code,
                account_name=account.account_name,
                amount=amount,
            ))
        sections = [
            StatementSection(
                category=category,
                lines=grouped[category],
                total=sum((line.amount for line in grouped[category]), ZERO),
            )
            for category in CATEGORY_ORDER
            if category in grouped
        ]
        return sections, sum((s.total for s in sections), ZERO)

    def income_statement(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> IncomeStatement:
        """Revenue and expense movement within a period."""
        movement = posted_line_totals(self.db, date_from=date_from, date_to=date_to)

        revenue_amounts = []
        expense_amounts = []
        for account in self._accounts(active_only=False):
            if account.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
                continue
            totals = movement.get(account.id)
            if totals is None and not account.is_active:
                continue
            totals = totals or ZERO_TOTALS
            amount = net_balance(account.normal_balance, totals.debit, totals.credit)
            if account.account_type == AccountType.REVENUE:
                revenue_amounts.append((account, amount))
            else:
                expense_amounts.append((account, amount))

        revenue, total_revenue = self._sections(revenue_amounts)
        expenses, total_expenses = self._sections(expense_amounts)
        expense_by_category = {s.category: s.total for s in expenses}

        cogs = expense_by_category.get(AccountCategory.COST_OF_GOODS_SOLD, ZERO)
        operating = expense_by_category.get(AccountCategory.OPERATING_EXPENSE, ZERO)
        non_operating = expense_by_category.get(AccountCategory.NON_OPERATING_EXPENSE, ZERO)
        gross_profit = total_revenue - cogs

        return IncomeStatement(
            period=Period(date_from=date_from, date_to=date_to),
            revenue=revenue,
            total_revenue=total_revenue,
            cost_of_goods_sold=cogs,
            gross_profit=gross_profit,
            operating_expenses=operating,
            operating_income=gross_profit - operating,
            non_operating_expenses=non_operating,
            expenses=expenses,
            total_expenses=total_expenses,
            net_income=total_revenue - total_expenses,
        )

    def balance_sheet(self, as_of_date: date | None = None) -> BalanceSheet:
        """Assets, liabilities and equity as of a date, plus current earnings."""
        as_of = as_of_date or date.today()
        totals = posted_line_totals(self.db, date_to=as_of)

        amounts: dict[AccountType, list[tuple[Account, Decimal]]] = defaultdict(list)
        for account in self._accounts(active_only=False):
            line_totals = totals.get(account.id)
            if line_totals is None and not account.is_active:
                continue
            amounts[account.account_type].append(
                (account, self._balance(account, line_totals or ZERO_TOTALS))
            )

        assets, total_assets = self._sections(amounts[AccountType.ASSET])
        liabilities, total_liabilities = self._sections(amounts[AccountType.LIABILITY])
        equity, equity_total = self._sections(amounts[AccountType.EQUITY])
        current_earnings = (
            sum((amount for _, amount in amounts[AccountType.REVENUE]), ZERO)
            - sum((amount for _, amount in amounts[AccountType.EXPENSE]), ZERO)
        )
        total_equity = equity_total + current_earnings
        right_side = total_liabilities + total_equity

        return BalanceSheet(
            as_of_date=as_of,
            assets=assets,
            total_assets=total_assets,
            liabilities=liabilities,
            total_liabilities=total_liabilities,
            equity=equity,
            current_earnings=current_earnings,
            total_equity=total_equity,
            total_liabilities_and_equity=right_side,
            is_balanced=abs(total_assets - right_side) < BALANCE_EPSILON,
        )
