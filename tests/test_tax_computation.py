# tests/test_tax_computation.py
from decimal import Decimal

import pytest

from app.domain.exceptions import ValidationError
from app.domain.services import tax_computation


def test_breakdown_21_percent():
    net, tax = tax_computation.breakdown(Decimal("1210.00"), Decimal("21"))
    assert net == Decimal("1000.00")
    assert tax == Decimal("210.00")


def test_breakdown_rounds_half_up_and_adds_up():
    net, tax = tax_computation.breakdown(Decimal("100.00"), Decimal("21"))
    assert net == Decimal("82.64")
    assert tax == Decimal("17.36")
    assert net + tax == Decimal("100.00")


def test_round2_half_up():
    assert tax_computation.round2(Decimal("2.345")) == Decimal("2.35")
    assert tax_computation.round2(Decimal("2.344")) == Decimal("2.34")


def test_aggregate_groups_by_rate():
    totals = tax_computation.aggregate([
        (Decimal("1210.00"), Decimal("21")),
        (Decimal("605.00"), Decimal("21")),
        (Decimal("221.00"), Decimal("10.5")),
    ])

    assert totals.gross == Decimal("2036.00")
    assert totals.net + totals.tax == totals.gross
    by_id = {v.aliquot_id: v for v in totals.vat}
    assert set(by_id) == {5, 4}
    assert by_id[5].base_amount == Decimal("1500.00")
    assert by_id[5].amount == Decimal("315.00")
    assert by_id[4].base_amount == Decimal("200.00")
    assert by_id[4].amount == Decimal("21.00")


def test_aggregate_without_vat_reports_gross_as_net():
    totals = tax_computation.aggregate([(Decimal("500.00"), Decimal("21"))], with_vat=False)
    assert totals.net == Decimal("500.00")
    assert totals.tax == Decimal("0.00")
    assert totals.vat == []


def test_unknown_rate_is_rejected():
    with pytest.raises(ValidationError):
        tax_computation.aliquot_id(Decimal("19"))
