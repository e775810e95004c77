# Overview: Service-layer operations for variations; resolves purchasable variants and binds them to lines.

"""
Variation Resolver

A product is ordered through one of its variations:
- DefaultVariation: the product has no variation groups; its single default
  row carries the product's own SKU and prices.
- NamedVariation(group, value): a concrete variant on a named axis
  (e.g. Color / Red) with its own SKU suffix and prices.

RULES:
1. A product with exactly one variation needs no selection; it is used directly.
2. With more than one variation the operator must pick exactly one before the
   line exists. There is no "add all variations" path.
3. bind_variation is the single place where SKU, stock display and unit price
   are set on a line, and they are always set together.
4. Zero variations is a catalog inconsistency (EmptyCatalog), never skipped.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Union

from ..drafts import (
    CUSTOMER_WHOLESALE,
    ORDER_PURCHASE,
    LineDraft,
    OrderDraft,
)
from ..errors import EmptyCatalog, ValidationError, VariationMissing
from ..money import as_decimal, non_negative
from .gateways import CatalogGateway, VariationRecord
from .packing_service import apply_packing


PRICE_ROLE_BUY = "buy"
PRICE_ROLE_RETAIL = "retail"
PRICE_ROLE_WHOLESALE = "wholesale"
PRICE_ROLES = (PRICE_ROLE_BUY, PRICE_ROLE_RETAIL, PRICE_ROLE_WHOLESALE)


@dataclass(frozen=True)
class DefaultVariation:
    id: int


@dataclass(frozen=True)
class NamedVariation:
    id: int
    group: str
    value: str


Variation = Union[DefaultVariation, NamedVariation]


@dataclass(frozen=True)
class ResolvedVariation:
    variation: Variation
    product_id: int
    sku: str
    stock: Decimal
    price: Decimal

    @property
    def id(self) -> int:
        return self.variation.id

    @property
    def label(self) -> str:
        if isinstance(self.variation, NamedVariation):
            return f"{self.variation.group}: {self.variation.value}"
        return "default"

    def to_dict(self) -> dict:
        return {
            "variation_id": self.id,
            "product_id": self.product_id,
            "kind": "named" if isinstance(self.variation, NamedVariation) else "default",
            "label": self.label,
            "sku": self.sku,
            "stock": str(self.stock),
            "price": str(self.price),
        }


def price_role_for(order_type: str, customer_type: str | None = None) -> str:
    """Purchases price at buy cost; sales at retail or wholesale by counterparty class."""
    if order_type == ORDER_PURCHASE:
        return PRICE_ROLE_BUY
    if customer_type == CUSTOMER_WHOLESALE:
        return PRICE_ROLE_WHOLESALE
    return PRICE_ROLE_RETAIL


def to_variation(record: VariationRecord) -> Variation:
    if record.is_default or not record.group_name:
        return DefaultVariation(id=record.id)
    return NamedVariation(id=record.id, group=record.group_name, value=record.name)


def _price_for(record: VariationRecord, role: str) -> Decimal:
    if role == PRICE_ROLE_BUY:
        return non_negative(record.price_buy)
    if role == PRICE_ROLE_WHOLESALE:
        return non_negative(record.price_wholesale)
    return non_negative(record.price_retail)


def resolve_variations(
    catalog: CatalogGateway,
    product_id: int,
    location_id: int,
    role: str,
) -> tuple[ResolvedVariation, ...]:
    """
    List the purchasable variations of a product, each annotated with its SKU,
    stock at the target location (0 when no stock entry exists) and the price
    for the requested role.

    Raises:
        ValidationError: unknown price role
        EmptyCatalog: product resolved to zero variations
        PersistenceError: catalog lookup failed
    """
    if role not in PRICE_ROLES:
        raise ValidationError(f"Invalid price role: {role!r}. Must be one of {list(PRICE_ROLES)}")

    records = catalog.get_variations(product_id, location_id)
    if not records:
        raise EmptyCatalog(
            f"Product {product_id} has no variations",
            details={"product_id": product_id},
        )

    return tuple(
        ResolvedVariation(
            variation=to_variation(record),
            product_id=record.product_id,
            sku=record.sku,
            stock=non_negative(record.stock_at_location),
            price=_price_for(record, role),
        )
        for record in records
    )


def auto_select(options) -> ResolvedVariation | None:
    """Return the only option when there is nothing to choose; None when the operator must pick."""
    if len(options) == 1:
        return options[0]
    return None


def requires_selection(options) -> bool:
    return auto_select(options) is None


def select_variation(options, variation_id: int | None) -> ResolvedVariation:
    if variation_id is None:
        only = auto_select(options)
        if only is not None:
            return only
        raise ValidationError(
            "Select a variation before adding this product",
            details={"choices": [o.id for o in options]},
        )
    for option in options:
        if option.id == variation_id:
            return option
    raise ValidationError(
        f"Variation {variation_id} is not available for this product",
        details={"variation_id": variation_id},
    )


def bind_variation(line: LineDraft, resolved: ResolvedVariation, unit_price=None) -> LineDraft:
    """
    Bind SKU, stock and unit price from one resolved variation onto a line.

    unit_price overrides the role price (e.g. a negotiated purchase cost) but
    is still bound in the same step.
    """
    price = resolved.price if unit_price is None else as_decimal(unit_price)
    return replace(
        line,
        product_id=resolved.product_id,
        variation_id=resolved.id,
        sku=resolved.sku,
        stock_at_location=resolved.stock,
        unit_price=price,
    )


def add_line(
    draft: OrderDraft,
    catalog: CatalogGateway,
    *,
    product_id: int,
    quantity=1,
    variation_id: int | None = None,
    unit_price=None,
    line_discount=0,
    packing=None,
) -> OrderDraft:
    """Resolve, select, bind and (optionally) apply packing; returns a new draft with the line appended."""
    if draft.location_id is None:
        raise ValidationError("Select a location before adding items", details={"field": "location_id"})

    role = price_role_for(draft.order_type, draft.customer_type)
    options = resolve_variations(catalog, product_id, draft.location_id, role)
    chosen = select_variation(options, variation_id)

    line = LineDraft(
        product_id=product_id,
        quantity=as_decimal(quantity),
        line_discount=as_decimal(line_discount),
    )
    line = bind_variation(line, chosen, unit_price=unit_price)
    if packing is not None:
        line = apply_packing(line, packing)
    return draft.with_line(line)


def verify_binding(catalog: CatalogGateway, line: LineDraft, location_id: int) -> VariationRecord:
    """
    Re-fetch the line's product variations and confirm its bound variation still exists.

    Raises:
        VariationMissing: the variation (or every variation of the product) is gone
    """
    records = catalog.get_variations(line.product_id, location_id)
    for record in records:
        if record.id == line.variation_id:
            return record
    raise VariationMissing(
        f"Variation {line.variation_id} of product {line.product_id} no longer exists",
        details={"product_id": line.product_id, "variation_id": line.variation_id},
    )


def bind_unresolved_lines(draft: OrderDraft, catalog: CatalogGateway) -> OrderDraft:
    """
    Bind lines submitted without a variation.

    Only unambiguous products are bound (single variation). A positive unit
    price already on the line is kept as the override; otherwise the role
    price is used.

    Raises:
        ValidationError: a product needs an explicit variation choice
        EmptyCatalog: a product has no variations
    """
    if draft.location_id is None or all(line.variation_id is not None for line in draft.lines):
        return draft

    role = price_role_for(draft.order_type, draft.customer_type)
    bound = []
    for line in draft.lines:
        if line.variation_id is not None:
            bound.append(line)
            continue
        options = resolve_variations(catalog, line.product_id, draft.location_id, role)
        chosen = select_variation(options, None)
        override = line.unit_price if line.unit_price > 0 else None
        bound.append(bind_variation(line, chosen, unit_price=override))
    return draft.with_lines(bound)
