"""
Pytest fixtures for Stockbook backend tests.

Provides test database setup, catalog fixtures, test client, and in-memory
gateways with failure injection for exercising the commit pipeline without a
database.
"""

from datetime import date
from decimal import Decimal
from fnmatch import fnmatchcase
from types import SimpleNamespace

import pytest

from stockbook import create_app
from stockbook.extensions import db
from stockbook.models import Contact, Location, Product, ProductVariation, StockEntry, VariationGroup
from stockbook.errors import PersistenceError, StockConflict
from stockbook.money import ZERO
from stockbook.services.commit_service import NumberingPolicy, OrderCommitPipeline
from stockbook.services.document_service import parse_sequence
from stockbook.services.gateways import StockLevel, StoredLine, StoredOrder, VariationRecord
from stockbook.services.store_gateways import ensure_default_variation


FIXED_DATE = date(2024, 5, 1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SALE_NUMBER_PREFIX': 'INV',
        'PURCHASE_NUMBER_PREFIX': 'PUR',
        'DOCUMENT_NUMBER_FORMAT': 'long',
        'DOCUMENT_NUMBER_TEMPLATE': '',
        'STOCK_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


# =============================================================================
# DATABASE CATALOG FIXTURES
# =============================================================================

@pytest.fixture(scope='function')
def location(db_session):
    loc = Location(name="Main Store", code="MAIN")
    db_session.add(loc)
    db_session.commit()
    return loc


@pytest.fixture(scope='function')
def supplier(db_session):
    contact = Contact(name="Fabric House", contact_type="supplier")
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture(scope='function')
def wholesale_customer(db_session):
    contact = Contact(name="Bulk Traders", contact_type="customer", customer_type="wholesale")
    db_session.add(contact)
    db_session.commit()
    return contact


@pytest.fixture(scope='function')
def plain_product(db_session):
    """Group-less product with its default variation."""
    product = Product(
        sku="CLOTH-001",
        name="Cotton Lawn",
        unit="m",
        price_buy=Decimal("300"),
        price_retail=Decimal("450"),
        price_wholesale=Decimal("400"),
    )
    db_session.add(product)
    ensure_default_variation(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def shirt_product(db_session):
    """Product with a Color group (Red, Blue)."""
    product = Product(sku="SHIRT-001", name="Shirt", price_buy=800, price_retail=1200, price_wholesale=1000)
    color = VariationGroup(name="Color")
    product.groups.append(color)
    for value, suffix, retail in (("Red", "RED", 1200), ("Blue", "BLU", 1250)):
        db_session.add(
            ProductVariation(
                product=product,
                group=color,
                name=value,
                sku_suffix=suffix,
                price_buy=800,
                price_retail=retail,
                price_wholesale=1000,
            )
        )
    db_session.add(product)
    db_session.commit()
    return product


def default_variation_of(product):
    return next(v for v in product.variations if v.is_default)


def set_stock(db_session, variation, location, quantity):
    entry = StockEntry(variation_id=variation.id, location_id=location.id, quantity=Decimal(str(quantity)))
    db_session.add(entry)
    db_session.commit()
    return entry


@pytest.fixture
def catalog_helpers():
    return SimpleNamespace(default_variation_of=default_variation_of, set_stock=set_stock)


# =============================================================================
# IN-MEMORY GATEWAYS
# =============================================================================

class FakeCatalog:
    def __init__(self):
        self.products: dict[int, list[VariationRecord]] = {}
        self.broken = False

    def add(self, record: VariationRecord):
        self.products.setdefault(record.product_id, []).append(record)
        return record

    def remove_variation(self, variation_id: int):
        for product_id, records in self.products.items():
            self.products[product_id] = [r for r in records if r.id != variation_id]

    def get_variations(self, product_id, location_id):
        if self.broken:
            raise PersistenceError("catalog offline")
        return list(self.products.get(product_id, []))


class FakeStock:
    """
    Versioned stock map.

    fail_for: variation ids whose upsert raises PersistenceError
    races: variation id -> number of concurrent writes to simulate before
           an upsert is allowed through
    """

    def __init__(self):
        self.entries: dict[tuple[int, int], tuple[Decimal, int]] = {}
        self.fail_for: set[int] = set()
        self.races: dict[int, int] = {}
        self.upserts: list[tuple[int, int, Decimal]] = []

    def seed(self, variation_id, location_id, quantity):
        self.entries[(variation_id, location_id)] = (Decimal(str(quantity)), 1)

    def quantity(self, variation_id, location_id):
        entry = self.entries.get((variation_id, location_id))
        return entry[0] if entry else None

    def get_stock(self, variation_id, location_id):
        entry = self.entries.get((variation_id, location_id))
        if entry is None:
            return StockLevel()
        return StockLevel(quantity=entry[0], version=entry[1])

    def upsert_stock(self, variation_id, location_id, new_quantity, expected_version=None):
        if variation_id in self.fail_for:
            raise PersistenceError("stock table unavailable")
        key = (variation_id, location_id)

        if self.races.get(variation_id, 0) > 0:
            # Another writer lands between our read and our write
            self.races[variation_id] -= 1
            quantity, version = self.entries.get(key, (ZERO, 0))
            self.entries[key] = (quantity + 1, version + 1)

        current = self.entries.get(key)
        if expected_version is None and current is not None:
            raise StockConflict("created concurrently")
        if expected_version is not None and (current is None or current[1] != expected_version):
            raise StockConflict("version moved")

        version = 1 if current is None else current[1] + 1
        self.entries[key] = (new_quantity, version)
        self.upserts.append((variation_id, location_id, new_quantity))
        return StockLevel(quantity=new_quantity, version=version)


class FakeOrders:
    """fail_on: any of "header", "lines", "payment", "delete", "status"."""

    def __init__(self):
        self.headers: dict[int, dict] = {}
        self.lines: dict[int, list] = {}
        self.payments: dict[int, list] = {}
        self.fail_on: set[str] = set()
        self.deleted: list[int] = []
        self._next_id = 1

    def _check(self, step):
        if step in self.fail_on:
            raise PersistenceError(f"{step} write failed")

    def create_order_header(self, fields):
        self._check("header")
        order_id = self._next_id
        self._next_id += 1
        self.headers[order_id] = dict(fields)
        return order_id

    def create_line_items(self, order_id, lines):
        self._check("lines")
        self.lines[order_id] = list(lines)

    def create_payment_entries(self, order_id, payments):
        self._check("payment")
        self.payments[order_id] = list(payments)

    def delete_order_header(self, order_id):
        self._check("delete")
        self.headers.pop(order_id, None)
        self.lines.pop(order_id, None)
        self.payments.pop(order_id, None)
        self.deleted.append(order_id)

    def update_order_status(self, order_id, status, payment_status):
        self._check("status")
        self.headers[order_id]["status"] = status
        self.headers[order_id]["payment_status"] = payment_status

    def load_order(self, order_id):
        header = self.headers.get(order_id)
        if header is None:
            return None
        return StoredOrder(
            id=order_id,
            order_type=header["order_type"],
            status=header["status"],
            payment_status=header["payment_status"],
            location_id=header["location_id"],
            document_number=header["document_number"],
            grand_total=header["grand_total"],
            document_date=header["document_date"],
            lines=tuple(
                StoredLine(
                    id=i,
                    product_id=line.product_id,
                    variation_id=line.variation_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    sku=line.sku,
                )
                for i, line in enumerate(self.lines.get(order_id, []), start=1)
            ),
            payments=tuple(self.payments.get(order_id, [])),
        )


class FakeNumbering:
    def __init__(self, numbers=()):
        self.numbers = list(numbers)
        self.broken = False

    def find_last_document_number(self, prefix, pattern, sequence_of=None):
        if self.broken:
            raise PersistenceError("history unavailable")
        glob = pattern.replace("%", "*").replace("_", "?")
        matches = [n for n in self.numbers if fnmatchcase(n, glob)]
        if not matches:
            return None
        return max(matches, key=sequence_of or parse_sequence)


class FakeAccounting:
    def __init__(self):
        self.entries: list[dict] = []
        self.broken = False

    def record_payment(self, order_id, amount, method, reference, description):
        if self.broken:
            raise PersistenceError("ledger unavailable")
        self.entries.append(
            {"order_id": order_id, "amount": amount, "method": method, "reference": reference, "description": description}
        )


@pytest.fixture
def gateways():
    """Fresh in-memory gateways. Catalog holds product 1 (default, id 11) and product 2 (Red 21 / Blue 22)."""
    catalog = FakeCatalog()
    catalog.add(VariationRecord(id=11, product_id=1, sku="CLOTH-001", is_default=True,
                                price_buy=Decimal("300"), price_retail=Decimal("450"),
                                price_wholesale=Decimal("400"), stock_at_location=Decimal("100")))
    catalog.add(VariationRecord(id=21, product_id=2, sku="SHIRT-001-RED", name="Red", group_name="Color",
                                price_buy=Decimal("800"), price_retail=Decimal("1200"),
                                price_wholesale=Decimal("1000"), stock_at_location=Decimal("5")))
    catalog.add(VariationRecord(id=22, product_id=2, sku="SHIRT-001-BLU", name="Blue", group_name="Color",
                                price_buy=Decimal("800"), price_retail=Decimal("1250"),
                                price_wholesale=Decimal("1000")))
    return SimpleNamespace(
        catalog=catalog,
        stock=FakeStock(),
        orders=FakeOrders(),
        numbering=FakeNumbering(),
        accounting=FakeAccounting(),
    )


@pytest.fixture
def pipeline(gateways):
    return OrderCommitPipeline(
        catalog=gateways.catalog,
        stock=gateways.stock,
        orders=gateways.orders,
        numbering=gateways.numbering,
        accounting=gateways.accounting,
        numbering_policy=NumberingPolicy(sale_prefix="INV", purchase_prefix="PUR"),
        stock_retry_attempts=3,
        clock=lambda: FIXED_DATE,
    )
