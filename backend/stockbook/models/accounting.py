from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class FinancialAccount(db.Model):
    """
    Cash or bank ledger account.

    Two default accounts are created on first use: "Cash in Hand" (cash
    tenders) and "Bank Account" (card and bank tenders).
    """
    __tablename__ = "financial_accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    account_type = db.Column(db.String(16), nullable=False)  # cash | bank
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    balance = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type,
            "is_default": self.is_default,
            "balance": money_str(self.balance),
            "created_at": to_utc_z(self.created_at),
        }


class AccountTransaction(db.Model):
    """
    Append-only ledger entry.

    direction: credit (money in, sale receipts) | debit (money out, purchase payments)
    """
    __tablename__ = "account_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("financial_accounts.id"), nullable=False, index=True)
    # No FK: ledger entries outlive deleted drafts
    order_id = db.Column(db.Integer, nullable=True, index=True)
    direction = db.Column(db.String(8), nullable=False)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    method = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(128), nullable=True)
    description = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    account = db.relationship("FinancialAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "order_id": self.order_id,
            "direction": self.direction,
            "amount": money_str(self.amount),
            "method": self.method,
            "reference": self.reference,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
        }
