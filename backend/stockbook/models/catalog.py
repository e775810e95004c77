from __future__ import annotations

from ..extensions import db
from ..money import money_str
from ..time_utils import to_utc_z


class Location(db.Model):
    """Branch or warehouse holding stock. Every order is placed against one location."""
    __tablename__ = "locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }


class Contact(db.Model):
    """
    Counterparty of an order.

    contact_type: customer | supplier
    customer_type decides which price a sale is quoted at (retail | wholesale).
    """
    __tablename__ = "contacts"
    __table_args__ = (
        db.Index("ix_contacts_type_name", "contact_type", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    contact_type = db.Column(db.String(16), nullable=False, default="customer")
    customer_type = db.Column(db.String(16), nullable=False, default="retail")
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Contact id={self.id} type={self.contact_type} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "contact_type": self.contact_type,
            "customer_type": self.customer_type,
            "name": self.name,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    VARIATION DESIGN:
    A product is always ordered through a ProductVariation row.
    - Products with variation groups order through the group's variations.
    - Products without groups own exactly one default variation
      (group_id IS NULL, is_default=True) carrying the product's own SKU and
      prices. ensure_default_variation creates it on demand.

    Product-level prices are the defaults copied onto the default variation.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=True)

    price_buy = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    price_retail = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    price_wholesale = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    groups = db.relationship(
        "VariationGroup",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )
    variations = db.relationship(
        "ProductVariation",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "price_buy": money_str(self.price_buy),
            "price_retail": money_str(self.price_retail),
            "price_wholesale": money_str(self.price_wholesale),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class VariationGroup(db.Model):
    """Named axis of variation on a product (e.g. Color, Size)."""
    __tablename__ = "variation_groups"
    __table_args__ = (
        db.UniqueConstraint("product_id", "name", name="uq_variation_groups_product_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)

    product = db.relationship("Product", back_populates="groups")
    variations = db.relationship("ProductVariation", back_populates="group", lazy=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "product_id": self.product_id, "name": self.name}


class ProductVariation(db.Model):
    """
    One purchasable variant. The effective SKU is product.sku plus sku_suffix
    (the default variation has no suffix).
    """
    __tablename__ = "product_variations"
    __table_args__ = (
        db.Index("ix_product_variations_product_active", "product_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    group_id = db.Column(db.Integer, db.ForeignKey("variation_groups.id"), nullable=True, index=True)

    name = db.Column(db.String(64), nullable=False, default="default")
    sku_suffix = db.Column(db.String(32), nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    price_buy = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    price_retail = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    price_wholesale = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", back_populates="variations")
    group = db.relationship("VariationGroup", back_populates="variations")

    @property
    def sku(self) -> str:
        base = self.product.sku if self.product is not None else ""
        if self.sku_suffix:
            return f"{base}-{self.sku_suffix}"
        return base

    def __repr__(self) -> str:
        return f"<ProductVariation id={self.id} product_id={self.product_id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "group_id": self.group_id,
            "group": self.group.name if self.group is not None else None,
            "name": self.name,
            "sku": self.sku,
            "is_default": self.is_default,
            "price_buy": money_str(self.price_buy),
            "price_retail": money_str(self.price_retail),
            "price_wholesale": money_str(self.price_wholesale),
            "is_active": self.is_active,
        }
