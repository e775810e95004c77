# backend/stockbook/routes/system.py
"""
System health endpoint.

Checks the database and the two pieces of reference data the order engine
relies on: default ledger accounts and a variation row for every product.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import FinancialAccount, Order, Product, ProductVariation
from ..services.accounting_service import BANK_ACCOUNT_NAME, CASH_ACCOUNT_NAME
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        order_count = db.session.query(Order).count()
        product_count = db.session.query(Product).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {"orders": order_count, "products": product_count},
        }
    except SQLAlchemyError:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_accounting_health() -> dict:
    """Degraded (not unhealthy) when default accounts are missing: they are created on first payment."""
    start_time = time.time()
    try:
        names = {
            name
            for (name,) in db.session.query(FinancialAccount.name)
            .filter(FinancialAccount.name.in_([CASH_ACCOUNT_NAME, BANK_ACCOUNT_NAME]))
            .all()
        }
        missing = sorted({CASH_ACCOUNT_NAME, BANK_ACCOUNT_NAME} - names)
        if missing:
            return {
                "status": "degraded",
                "latency_ms": _elapsed_ms(start_time),
                "warning": f"Missing default accounts: {', '.join(missing)}",
            }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time)}
    except SQLAlchemyError:
        current_app.logger.exception("Accounting health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Accounting error"}


def check_catalog_health() -> dict:
    """Products with no active variation cannot be ordered (EmptyCatalog)."""
    start_time = time.time()
    try:
        orphaned = (
            db.session.query(Product.id)
            .filter(Product.is_active.is_(True))
            .filter(~Product.variations.any(ProductVariation.is_active.is_(True)))
            .count()
        )
        if orphaned:
            return {
                "status": "degraded",
                "latency_ms": _elapsed_ms(start_time),
                "warning": f"{orphaned} active product(s) without variations; run 'flask catalog ensure-defaults'",
            }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time)}
    except SQLAlchemyError:
        current_app.logger.exception("Catalog health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Catalog error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "accounting": check_accounting_health(),
        "catalog": check_catalog_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }
    return response, http_status
