"""Document numbering: formats, sequence derivation, fallback."""

from datetime import date

import pytest

from stockbook.errors import ErrorKind
from stockbook.services import document_service
from stockbook.services.document_service import DocumentSequenceError, next_document_number


REF = date(2024, 5, 1)


def test_long_format_restarts_each_year(gateways):
    gateways.numbering.numbers = ["INV-2023-0041", "INV-2024-0007", "INV-2024-0003"]

    number = next_document_number(gateways.numbering, prefix="INV", fmt="long", reference_date=REF)

    assert number.value == "INV-2024-0008"
    assert number.sequence == 8
    assert not number.is_fallback


def test_first_number_of_the_year(gateways):
    gateways.numbering.numbers = ["INV-2023-0041"]

    assert next_document_number(gateways.numbering, prefix="INV", reference_date=REF).value == "INV-2024-0001"


def test_short_format(gateways):
    gateways.numbering.numbers = ["PUR-0009"]

    number = next_document_number(gateways.numbering, prefix="PUR", fmt="short", reference_date=REF)

    assert number.value == "PUR-0010"


def test_sequence_past_padding_still_increments(gateways):
    gateways.numbering.numbers = ["INV-2024-9999", "INV-2024-10000"]

    assert next_document_number(gateways.numbering, prefix="INV", reference_date=REF).value == "INV-2024-10001"


def test_custom_template(gateways):
    gateways.numbering.numbers = ["S/2024/05/0002"]

    number = next_document_number(
        gateways.numbering,
        prefix="S",
        fmt="custom",
        reference_date=REF,
        template="{PREFIX}/{YEAR}/{MONTH}/{SEQ}",
    )

    assert number.value == "S/2024/05/0003"


def test_empty_custom_template_uses_long_layout():
    assert document_service.render_number("INV", "custom", 5, REF, template="") == "INV-2024-0005"


def test_template_without_seq_is_rejected(gateways):
    with pytest.raises(DocumentSequenceError):
        next_document_number(gateways.numbering, prefix="INV", fmt="custom", reference_date=REF, template="{PREFIX}-{YEAR}")


def test_unknown_format_is_rejected(gateways):
    with pytest.raises(DocumentSequenceError):
        next_document_number(gateways.numbering, prefix="INV", fmt="weekly", reference_date=REF)


def test_history_failure_returns_placeholder_with_warning(gateways):
    gateways.numbering.broken = True

    number = next_document_number(gateways.numbering, prefix="INV", reference_date=REF)

    assert number.value == "INV-20240501-0001"
    assert number.is_fallback
    assert number.warning.kind == ErrorKind.NUMBERING_FALLBACK


def test_parse_sequence():
    assert document_service.parse_sequence("INV-2024-0042") == 42
    assert document_service.parse_sequence("INV-DRAFT") == 0
    assert document_service.parse_sequence(None) == 0


def test_custom_template_with_sequence_in_the_middle(gateways):
    gateways.numbering.numbers = ["INV/0001/2024", "INV/0009/2023"]

    number = next_document_number(
        gateways.numbering,
        prefix="INV",
        fmt="custom",
        reference_date=REF,
        template="{PREFIX}/{SEQ}/{YEAR}",
    )

    assert number.value == "INV/0002/2024"


def test_custom_template_starting_with_sequence_only_scans_its_series(gateways):
    gateways.numbering.numbers = ["0004-INV-2024", "INV-2024-0090"]

    number = next_document_number(
        gateways.numbering,
        prefix="INV",
        fmt="custom",
        reference_date=REF,
        template="{SEQ}-{PREFIX}-{YEAR}",
    )

    assert document_service.search_pattern("INV", "custom", REF, template="{SEQ}-{PREFIX}-{YEAR}") == "%-INV-2024"
    assert number.value == "0005-INV-2024"


def test_short_series_ignores_long_numbers(gateways):
    gateways.numbering.numbers = ["PUR-2024-0077", "PUR-0003"]

    assert next_document_number(gateways.numbering, prefix="PUR", fmt="short", reference_date=REF).value == "PUR-0004"


def test_template_with_two_sequences_is_rejected(gateways):
    with pytest.raises(DocumentSequenceError):
        next_document_number(
            gateways.numbering, prefix="INV", fmt="custom", reference_date=REF, template="{SEQ}-{PREFIX}-{SEQ}"
        )


def test_parse_sequence_with_series_matcher():
    matcher = document_service.sequence_matcher("INV", "custom", REF, template="{PREFIX}/{SEQ}/{YEAR}")

    assert document_service.parse_sequence("INV/0012/2024", matcher) == 12
    assert document_service.parse_sequence("INV/0012/2023", matcher) == 0
