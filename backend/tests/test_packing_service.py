"""Packing calculator: detailed vs quick entry, lenient parsing, quantity override."""

from decimal import Decimal

from stockbook.drafts import LineDraft, PackingBox, PackingEntry, PackingPiece, QuickPacking
from stockbook.services import packing_service
from stockbook.services.pricing_service import line_total


def _boxes(*boxes):
    return tuple(PackingBox(pieces=tuple(PackingPiece(m) for m in box)) for box in boxes)


def test_detailed_totals_count_boxes_pieces_and_sum_measures():
    packing = PackingEntry(
        boxes=_boxes(["5.5", "4.5"], ["3"]),
        loose_pieces=(PackingPiece("2"),),
    )

    totals = packing_service.calculate_totals(packing)

    assert totals.total_boxes == 2
    assert totals.total_pieces == 4
    assert totals.total_measure == Decimal("15.0")
    assert packing_service.entry_mode(packing) == packing_service.ENTRY_MODE_DETAILED


def test_quick_entry_is_authoritative_when_any_field_is_set():
    packing = PackingEntry(
        boxes=_boxes(["100"]),
        quick=QuickPacking(boxes="2", pieces=10, measure="40"),
    )

    totals = packing_service.calculate_totals(packing)

    assert (totals.total_boxes, totals.total_pieces, totals.total_measure) == (2, 10, Decimal("40"))
    assert packing_service.entry_mode(packing) == packing_service.ENTRY_MODE_QUICK


def test_blank_or_zero_quick_entry_falls_back_to_detailed():
    packing = PackingEntry(boxes=_boxes(["7"]), quick=QuickPacking(boxes="", pieces=0, measure=None))

    totals = packing_service.calculate_totals(packing)

    assert totals.total_measure == Decimal("7")
    assert packing_service.quick_is_empty(packing.quick)


def test_parse_measure_is_lenient():
    assert packing_service.parse_measure("007.5") == Decimal("7.5")
    assert packing_service.parse_measure("") == 0
    assert packing_service.parse_measure("abc") == 0
    assert packing_service.parse_measure("-3") == 0
    assert packing_service.parse_measure(None) == 0


def test_no_packing_means_zero_totals():
    totals = packing_service.calculate_totals(None)
    assert (totals.total_boxes, totals.total_pieces, totals.total_measure) == (0, 0, 0)


def test_packing_overrides_line_quantity():
    line = LineDraft(product_id=1, quantity=Decimal("10"), unit_price=Decimal("100"), variation_id=11)
    packing = PackingEntry(boxes=_boxes(["20", "22.5"]))

    updated = packing_service.apply_packing(line, packing)

    assert updated.quantity == Decimal("42.5")
    assert updated.packing is packing
    assert line_total(updated) == Decimal("4250.0")
    # The input draft line is untouched
    assert line.quantity == Decimal("10")


def test_two_boxes_of_five_pieces_override_manual_quantity():
    line = LineDraft(product_id=1, quantity=Decimal("1"), unit_price=Decimal("10"), variation_id=11)
    packing = PackingEntry(boxes=_boxes(["4"] * 5, ["3", "5", "4", "4", "4"]))

    updated = packing_service.apply_packing(line, packing)
    totals = packing_service.calculate_totals(packing)

    assert (totals.total_boxes, totals.total_pieces) == (2, 10)
    assert updated.quantity == Decimal("40")


def test_empty_packing_keeps_entered_quantity():
    line = LineDraft(product_id=1, quantity=Decimal("3"), unit_price=Decimal("10"), variation_id=11)
    packing = PackingEntry(boxes=_boxes([""]))

    updated = packing_service.apply_packing(line, packing)

    assert updated.quantity == Decimal("3")
    assert updated.packing is packing


def test_packing_from_payload_accepts_bare_and_object_pieces():
    packing = packing_service.packing_from_payload({
        "boxes": [{"pieces": [{"measure": "5"}, "6"]}],
        "loose_pieces": [1.5],
    })

    totals = packing_service.calculate_totals(packing)

    assert totals.total_boxes == 1
    assert totals.total_pieces == 3
    assert totals.total_measure == Decimal("12.5")
    assert packing_service.packing_from_payload(None) is None


def test_aggregate_packing_skips_lines_without_packing():
    with_packing = LineDraft(product_id=1, packing=PackingEntry(quick=QuickPacking(1, 4, "12")))
    without = LineDraft(product_id=2, quantity=Decimal("5"))

    totals = packing_service.aggregate_packing([with_packing, without, with_packing])

    assert (totals.total_boxes, totals.total_pieces, totals.total_measure) == (2, 8, Decimal("24"))
