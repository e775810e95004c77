from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StockEntry(db.Model):
    """
    On-hand quantity for one variation at one location.

    CONCURRENCY:
    version_id is SQLAlchemy's optimistic lock column. Every UPDATE carries
    "WHERE version_id = <read version>"; a concurrent writer makes the UPDATE
    match zero rows and the flush raises StaleDataError, which the stock
    gateway reports as StockConflict.

    Rows are created lazily on the first upsert for a (variation, location).
    """
    __tablename__ = "stock_entries"
    __table_args__ = (
        db.UniqueConstraint("variation_id", "location_id", name="uq_stock_entries_variation_location"),
        db.CheckConstraint("quantity >= 0", name="ck_stock_entries_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variation_id = db.Column(db.Integer, db.ForeignKey("product_variations.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variation = db.relationship("ProductVariation", backref=db.backref("stock_entries", lazy=True))
    location = db.relationship("Location")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<StockEntry variation_id={self.variation_id} location_id={self.location_id} "
            f"quantity={self.quantity} v{self.version_id}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variation_id": self.variation_id,
            "location_id": self.location_id,
            "quantity": str(self.quantity),
            "version_id": self.version_id,
            "updated_at": to_utc_z(self.updated_at),
        }
