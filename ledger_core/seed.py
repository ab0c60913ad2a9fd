"""
Default data for a fresh ledger database.

Seeds a standard chart of accounts (assets 1xxx through expenses
5xxx, grouped under header accounts) and an open fiscal year, so
a new installation can post its first entry right away.

Seeding is idempotent: accounts whose number already exists and
a fiscal year that is already defined are left alone.

    ledger-seed              # current year
    ledger-seed --year 2025
"""

import argparse
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_core.logging_config import configure_logging
from ledger_core.models.account import Account
from ledger_core.models.base import SessionLocal, utcnow
from ledger_core.models.enums import AccountType, PeriodType
from ledger_core.schemas.account import AccountCreate
from ledger_core.schemas.fiscal_period import FiscalPeriodCreate
from ledger_core.services.account_service import AccountService
from ledger_core.services.fiscal_period_service import FiscalPeriodService
from ledger_core.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

# (number, name, type, sub_type, parent number, is_system)
# Parents come before their children.
DEFAULT_CHART = [
    ("1000", "Assets", AccountType.ASSET, "header", None, True),
    ("1100", "Current Assets", AccountType.ASSET, "current_asset", "1000", False),
    ("1110", "Cash", AccountType.ASSET, "cash", "1100", True),
    ("1120", "Bank Account", AccountType.ASSET, "bank", "1100", False),
    ("1130", "Accounts Receivable", AccountType.ASSET, "accounts_receivable", "1100", True),
    ("1140", "Inventory", AccountType.ASSET, "inventory", "1100", False),
    ("1200", "Fixed Assets", AccountType.ASSET, "fixed_asset", "1000", False),
    ("1210", "Property, Plant & Equipment", AccountType.ASSET, "ppe", "1200", False),
    ("1220", "Accumulated Depreciation", AccountType.ASSET, "accumulated_depreciation", "1200", False),

    ("2000", "Liabilities", AccountType.LIABILITY, "header", None, True),
    ("2100", "Current Liabilities", AccountType.LIABILITY, "current_liability", "2000", False),
    ("2110", "Accounts Payable", AccountType.LIABILITY, "accounts_payable", "2100", True),
    ("2120", "Tax Payable", AccountType.LIABILITY, "tax_payable", "2100", False),
    ("2200", "Long-term Liabilities", AccountType.LIABILITY, "long_term_liability", "2000", False),

    ("3000", "Equity", AccountType.EQUITY, "header", None, True),
    ("3100", "Owner's Equity", AccountType.EQUITY, "owners_equity", "3000", False),
    ("3200", "Retained Earnings", AccountType.EQUITY, "retained_earnings", "3000", True),

    ("4000", "Revenue", AccountType.REVENUE, "header", None, True),
    ("4100", "Sales Revenue", AccountType.REVENUE, "sales", "4000", False),
    ("4200", "Service Revenue", AccountType.REVENUE, "service", "4000", False),
    ("4300", "Other Revenue", AccountType.REVENUE, "other", "4000", False),

    ("5000", "Expenses", AccountType.EXPENSE, "header", None, True),
    ("5100", "Cost of Goods Sold", AccountType.EXPENSE, "cogs", "5000", False),
    ("5200", "Operating Expenses", AccountType.EXPENSE, "operating", "5000", False),
    ("5210", "Salaries & Wages", AccountType.EXPENSE, "salaries", "5200", False),
    ("5220", "Rent Expense", AccountType.EXPENSE, "rent", "5200", False),
    ("5230", "Utilities Expense", AccountType.EXPENSE, "utilities", "5200", False),
    ("5240", "Marketing & Advertising", AccountType.EXPENSE, "marketing", "5200", False),
    ("5250", "Office Supplies", AccountType.EXPENSE, "supplies", "5200", False),
]


def seed_chart_of_accounts(accounts: AccountService) -> list[Account]:
    """Create the default chart. Returns only the accounts it created."""
    # Includes soft-deleted accounts: their numbers stay reserved
    known = dict(
        accounts.db.execute(select(Account.account_number, Account.id)).all()
    )

    created = []
    for number, name, account_type, sub_type, parent_number, is_system in DEFAULT_CHART:
        if number in known:
            continue
        account = accounts.create_account(AccountCreate(
            account_number=number,
            name=name,
            account_type=account_type,
            sub_type=sub_type,
            parent_id=known.get(parent_number),
            is_system=is_system,
            # Header accounts only aggregate their children
            allow_manual_entries=sub_type != "header",
        ))
        known[number] = account.id
        created.append(account)
    return created


def seed_fiscal_year(periods: FiscalPeriodService, fiscal_year: int):
    """Open a calendar fiscal year unless one is already defined."""
    for period in periods.list_periods(fiscal_year=fiscal_year):
        if period.period_type == PeriodType.YEAR:
            return None

    return periods.create_period(FiscalPeriodCreate(
        name=f"FY {fiscal_year}",
        period_type=PeriodType.YEAR,
        fiscal_year=fiscal_year,
        start_date=date(fiscal_year, 1, 1),
        end_date=date(fiscal_year, 12, 31),
    ))


def seed_defaults(
    db: Session,
    fiscal_year: int | None = None,
    lock_manager=None,
    clock=None,
) -> dict:
    """
    Seed the fiscal year and the chart of accounts in one transaction.

    fiscal_year defaults to the clock's current year.
    """
    clock = clock or utcnow
    fiscal_year = fiscal_year or clock().year

    uow = UnitOfWork(db, lock_manager=lock_manager)
    periods = FiscalPeriodService(db, uow=uow, clock=clock)
    accounts = AccountService(db, uow=uow, clock=clock)

    with uow.atomic():
        period = seed_fiscal_year(periods, fiscal_year)
        created = seed_chart_of_accounts(accounts)

    summary = {
        "fiscal_year": fiscal_year,
        "period_created": period is not None,
        "accounts_created": len(created),
    }
    logger.info("Ledger defaults seeded", extra=summary)
    return summary


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(
        description="Seed the default chart of accounts and an open fiscal year."
    )
    parser.add_argument(
        "--year", type=int, default=None,
        help="fiscal year to open (default: current year)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    db = SessionLocal()
    try:
        seed_defaults(db, fiscal_year=args.year)
    finally:
        db.close()


if __name__ == "__main__":
    main()
