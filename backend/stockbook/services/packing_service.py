# Overview: Service-layer operations for packing; converts box/piece entries into line quantities.

"""
Packing Calculator

Two mutually exclusive entry modes:
- quick: a flat (boxes, pieces, measure) triple typed by the operator.
  When any of the three is non-empty it is authoritative and the tree is ignored.
- detailed: boxes containing measured pieces, plus loose pieces outside any box.

Inconsistent entries (a box with no pieces, blank lengths) are never errors;
they simply contribute zero.
"""

from __future__ import annotations

import re
from dataclasses import replace

from ..drafts import (
    LineDraft,
    PackingBox,
    PackingEntry,
    PackingPiece,
    PackingTotals,
    QuickPacking,
)
from ..errors import ValidationError
from ..money import ZERO, as_decimal, non_negative


ENTRY_MODE_DETAILED = "detailed"
ENTRY_MODE_QUICK = "quick"

_LEADING_ZEROS = re.compile(r"^0+(?=\d)")


def parse_measure(value):
    """Parse an operator-typed length. Blank or unparseable -> 0; "007.5" -> 7.5."""
    if isinstance(value, str):
        value = _LEADING_ZEROS.sub("", value.strip())
    return non_negative(value)


def _is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def quick_is_empty(quick: QuickPacking | None) -> bool:
    if quick is None:
        return True
    return all(_is_blank(v) or as_decimal(v) == ZERO for v in (quick.boxes, quick.pieces, quick.measure))


def entry_mode(packing: PackingEntry) -> str:
    return ENTRY_MODE_QUICK if not quick_is_empty(packing.quick) else ENTRY_MODE_DETAILED


def calculate_totals(packing: PackingEntry | None) -> PackingTotals:
    if packing is None:
        return PackingTotals()

    if not quick_is_empty(packing.quick):
        quick = packing.quick
        return PackingTotals(
            total_boxes=int(non_negative(quick.boxes)),
            total_pieces=int(non_negative(quick.pieces)),
            total_measure=parse_measure(quick.measure),
        )

    total_boxes = len(packing.boxes)
    total_pieces = sum(len(box.pieces) for box in packing.boxes) + len(packing.loose_pieces)
    total_measure = sum(
        (parse_measure(piece.measure) for box in packing.boxes for piece in box.pieces),
        ZERO,
    ) + sum((parse_measure(piece.measure) for piece in packing.loose_pieces), ZERO)

    return PackingTotals(
        total_boxes=total_boxes,
        total_pieces=total_pieces,
        total_measure=total_measure,
    )


def apply_packing(line: LineDraft, packing: PackingEntry | None) -> LineDraft:
    """
    Save packing onto a line.

    The line's quantity becomes the packing's total measure when that is
    positive; otherwise the previously entered quantity is kept.
    """
    totals = calculate_totals(packing)
    if totals.total_measure > ZERO:
        return replace(line, packing=packing, quantity=totals.total_measure)
    return replace(line, packing=packing)


def aggregate_packing(lines) -> PackingTotals:
    """Sum packing totals across lines that carry packing data."""
    boxes = 0
    pieces = 0
    measure = ZERO
    for line in lines:
        if line.packing is None:
            continue
        totals = calculate_totals(line.packing)
        boxes += totals.total_boxes
        pieces += totals.total_pieces
        measure += totals.total_measure
    return PackingTotals(total_boxes=boxes, total_pieces=pieces, total_measure=measure)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValidationError(message, details={"field": "packing"})


def packing_from_payload(data: dict | None) -> PackingEntry | None:
    """
    Build a PackingEntry from its JSON shape:

        {"boxes": [{"pieces": [{"measure": "5.5"}, ...]}, ...],
         "loose_pieces": [{"measure": "2"}],
         "quick": {"boxes": 2, "pieces": 10, "measure": "40"}}

    Pieces may also be given as bare numbers/strings.
    """
    if not data:
        return None
    _require(isinstance(data, dict), "packing must be an object")

    def _piece(raw) -> PackingPiece:
        if isinstance(raw, dict):
            return PackingPiece(measure=raw.get("measure"))
        return PackingPiece(measure=raw)

    def _pieces(raw, field) -> tuple[PackingPiece, ...]:
        _require(isinstance(raw, (list, tuple)), f"packing {field} must be a list")
        return tuple(_piece(p) for p in raw)

    raw_boxes = data.get("boxes") or ()
    _require(isinstance(raw_boxes, (list, tuple)), "packing boxes must be a list")
    boxes = []
    for box in raw_boxes:
        box = box or {}
        _require(isinstance(box, dict), "packing box must be an object")
        boxes.append(PackingBox(pieces=_pieces(box.get("pieces") or (), "pieces")))
    loose = _pieces(data.get("loose_pieces") or (), "loose_pieces")

    quick = None
    raw_quick = data.get("quick")
    if raw_quick:
        _require(isinstance(raw_quick, dict), "packing quick entry must be an object")
        quick = QuickPacking(
            boxes=raw_quick.get("boxes"),
            pieces=raw_quick.get("pieces"),
            measure=raw_quick.get("measure"),
        )

    return PackingEntry(boxes=tuple(boxes), loose_pieces=loose, quick=quick)
