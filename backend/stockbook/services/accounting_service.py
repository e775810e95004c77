# Overview: Service-layer operations for accounting; records payment receipts and outgoings on ledger accounts.

"""
Accounting sink

Every recorded payment lands on one of two default accounts:
- cash         -> "Cash in Hand"
- card / bank  -> "Bank Account"

Sales record a credit (money in), purchases a debit (money out). The account
balance moves with each entry.

The commit pipeline treats failures here as non-fatal: they come back as
AccountingSyncWarning and the order stays committed.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..drafts import ORDER_PURCHASE, PAYMENT_METHOD_CASH
from ..errors import PersistenceError
from ..extensions import db
from ..models import AccountTransaction, FinancialAccount, Order
from ..money import quantize_money
from .concurrency import commit_or_raise, translate_errors


logger = logging.getLogger("stockbook.accounting")


CASH_ACCOUNT_NAME = "Cash in Hand"
BANK_ACCOUNT_NAME = "Bank Account"

ACCOUNT_TYPE_CASH = "cash"
ACCOUNT_TYPE_BANK = "bank"

DIRECTION_CREDIT = "credit"
DIRECTION_DEBIT = "debit"


def _get_or_create(name: str, account_type: str) -> FinancialAccount:
    account = db.session.query(FinancialAccount).filter_by(name=name).one_or_none()
    if account is None:
        account = FinancialAccount(name=name, account_type=account_type, is_default=True, balance=0)
        db.session.add(account)
        db.session.flush()
        logger.info("Created default account %r", name)
    return account


@translate_errors("default account setup")
def ensure_default_accounts() -> tuple[FinancialAccount, FinancialAccount]:
    """Return (cash, bank), creating either if missing."""
    cash = _get_or_create(CASH_ACCOUNT_NAME, ACCOUNT_TYPE_CASH)
    bank = _get_or_create(BANK_ACCOUNT_NAME, ACCOUNT_TYPE_BANK)
    commit_or_raise("default account setup")
    return cash, bank


class SqlAccountingSink:
    """AccountingSink backed by FinancialAccount / AccountTransaction."""

    @translate_errors("accounting entry")
    def record_payment(
        self,
        order_id: int,
        amount: Decimal,
        method: str,
        reference: str | None,
        description: str,
    ) -> None:
        order = db.session.get(Order, order_id)
        if order is None:
            raise PersistenceError(f"Order {order_id} not found for accounting entry", details={"order_id": order_id})

        cash, bank = ensure_default_accounts()
        account = cash if method == PAYMENT_METHOD_CASH else bank
        direction = DIRECTION_DEBIT if order.order_type == ORDER_PURCHASE else DIRECTION_CREDIT
        amount = quantize_money(amount)

        db.session.add(
            AccountTransaction(
                account_id=account.id,
                order_id=order_id,
                direction=direction,
                amount=amount,
                method=method,
                reference=reference,
                description=description,
            )
        )
        if direction == DIRECTION_CREDIT:
            account.balance = quantize_money(account.balance) + amount
        else:
            account.balance = quantize_money(account.balance) - amount
        commit_or_raise("accounting entry")
        logger.info("%s %s on %r for order %s", direction, amount, account.name, order_id)
