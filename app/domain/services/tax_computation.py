# app/domain/services/tax_computation.py
"""
Cálculo de neto e IVA a partir del subtotal bruto de cada renglón.

El redondeo es HALF_UP a 2 decimales y se aplica por renglón; los totales del
comprobante son la suma de los valores ya redondeados, que es lo que AFIP
valida contra el detalle de alícuotas.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Tuple

from app.domain.exceptions import ValidationError
from app.domain.models.authorization import VatBreakdown

CENT = Decimal("0.01")

# Códigos de alícuota de AFIP (FEParamGetTiposIva)
AFIP_ALIQUOT_IDS = {
    Decimal("0"): 3,
    Decimal("10.5"): 4,
    Decimal("21"): 5,
    Decimal("27"): 6,
    Decimal("5"): 8,
    Decimal("2.5"): 9,
}


def round2(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def breakdown(gross_subtotal: Decimal, rate_percent: Decimal) -> Tuple[Decimal, Decimal]:
    """Devuelve (neto, iva) para un subtotal bruto con IVA incluido."""
    gross = Decimal(gross_subtotal)
    net = round2(gross / (Decimal(1) + Decimal(rate_percent) / Decimal(100)))
    tax = round2(gross - net)
    return net, tax


def aliquot_id(rate_percent: Decimal) -> int:
    try:
        return AFIP_ALIQUOT_IDS[Decimal(rate_percent)]
    except KeyError:
        raise ValidationError(f"Alícuota de IVA no soportada por AFIP: {rate_percent}%") from None


@dataclass
class TaxTotals:
    net: Decimal = Decimal("0.00")
    tax: Decimal = Decimal("0.00")
    gross: Decimal = Decimal("0.00")
    vat: List[VatBreakdown] = field(default_factory=list)


def aggregate(lines: Iterable[Tuple[Decimal, Decimal]], with_vat: bool = True) -> TaxTotals:
    """
    Suma los desgloses por renglón. `lines` son pares (subtotal, alícuota).

    Con `with_vat=False` (comprobantes C) no se discrimina IVA: el neto es
    el total y no se informa detalle de alícuotas.
    """
    totals = TaxTotals()
    by_rate = OrderedDict()
    for subtotal, rate in lines:
        subtotal = round2(subtotal)
        totals.gross += subtotal
        if not with_vat:
            totals.net += subtotal
            continue
        net, tax = breakdown(subtotal, rate)
        totals.net += net
        totals.tax += tax
        base, amount = by_rate.get(Decimal(rate), (Decimal("0.00"), Decimal("0.00")))
        by_rate[Decimal(rate)] = (base + net, amount + tax)

    totals.vat = [
        VatBreakdown(aliquot_id=aliquot_id(rate), base_amount=base, amount=amount)
        for rate, (base, amount) in by_rate.items()
    ]
    return totals
