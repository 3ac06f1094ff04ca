# tests/test_issue_document.py
from datetime import date
from decimal import Decimal

import pytest

from app.domain.exceptions import InsufficientStock, ValidationError
from app.domain.models.authorization import AuthorizationErrorKind, AuthorizationResult
from app.domain.models.document import Document, DocumentLine, DocumentStatus, DocumentType, LineRequest
from app.infrastructure.persistence.models import Factura, Producto


def stock(db, product_id):
    db.expire_all()
    return db.get(Producto, product_id).stock


def test_issue_invoice_b_authorized(issuance, tax_authority, db):
    result = issuance.execute(
        2,
        [
            LineRequest(product_id=1, quantity=2, unit_price=Decimal("605.00")),
            LineRequest(product_id=2, quantity=1, unit_price=Decimal("99.999")),
        ],
        DocumentType.FACTURA_B,
    )

    document = result.document
    assert result.authorization.ok
    assert document.status == DocumentStatus.AUTHORIZED
    assert document.total == Decimal("1310.00")
    assert document.total == sum(line.subtotal for line in document.lines)
    assert document.authorization_code is not None
    assert document.voucher_number == 1
    assert document.sales_point == 1
    assert stock(db, 1) == 8
    assert stock(db, 2) == 4

    payload = tax_authority.payloads[0]
    assert payload.type_code == 6
    assert payload.total_amount == Decimal("1310.00")
    assert payload.net_amount + payload.vat_amount == payload.total_amount


def test_voucher_number_follows_authority(issuance, tax_authority):
    tax_authority.last_numbers[1] = 41
    result = issuance.execute(
        1, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("1210.00"))], DocumentType.FACTURA_A
    )

    assert result.document.voucher_number == 42
    payload = tax_authority.payloads[0]
    assert payload.net_amount == Decimal("1000.00")
    assert payload.vat_amount == Decimal("210.00")
    assert payload.receiver_doc_type == 80


def test_insufficient_stock_changes_nothing(issuance, tax_authority, db):
    with pytest.raises(InsufficientStock) as excinfo:
        issuance.execute(
            2,
            [
                LineRequest(product_id=1, quantity=3, unit_price=Decimal("10")),
                LineRequest(product_id=2, quantity=6, unit_price=Decimal("10")),
            ],
            DocumentType.FACTURA_B,
        )

    assert excinfo.value.product_id == 2
    assert stock(db, 1) == 10
    assert stock(db, 2) == 5
    assert db.query(Factura).count() == 0
    assert tax_authority.payloads == []


def test_repeated_product_counts_against_stock(issuance):
    with pytest.raises(InsufficientStock):
        issuance.execute(
            2,
            [
                LineRequest(product_id=2, quantity=3, unit_price=Decimal("10")),
                LineRequest(product_id=2, quantity=3, unit_price=Decimal("10")),
            ],
            DocumentType.FACTURA_B,
        )


def test_authority_unavailable_keeps_pending_document(issuance, tax_authority, db):
    tax_authority.unavailable = True

    result = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    )

    document = result.document
    assert result.authorization.error_kind == AuthorizationErrorKind.UNAVAILABLE
    assert document.status == DocumentStatus.PENDING
    assert document.authorization_code is None
    assert document.voucher_number is None
    assert document.authorization_rejected is False
    assert stock(db, 1) == 9


def test_authority_timeout_is_unavailable(issuance, tax_authority, authorization):
    authorization.timeout_seconds = 0.05
    tax_authority.delay = 0.5

    result = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    )

    assert result.authorization.error_kind == AuthorizationErrorKind.UNAVAILABLE
    assert result.document.status == DocumentStatus.PENDING


def test_rejection_is_persisted(issuance, tax_authority):
    tax_authority.rejection = "10016: El campo CbteFch es inválido"

    result = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    )

    document = result.document
    assert result.authorization.error_kind == AuthorizationErrorKind.REJECTED
    assert document.status == DocumentStatus.PENDING
    assert document.authorization_rejected is True
    assert "CbteFch" in document.rejection_reason
    assert document.authorization_code is None


def test_rejection_requiring_other_class(issuance, tax_authority):
    tax_authority.rejection = "10192: El receptor debe recibir Factura de Crédito Electrónica (FCE) MiPyME"

    result = issuance.execute(
        1, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_A
    )

    assert result.authorization.error_kind == AuthorizationErrorKind.ALTERNATE_CLASS_REQUIRED
    assert result.document.rejection_reason.startswith("ALTERNATE_CLASS_REQUIRED")


def test_delivery_note_is_not_sent_to_authority(issuance, tax_authority, db):
    result = issuance.execute(
        2, [LineRequest(product_id=2, quantity=2, unit_price=Decimal("1000"))], DocumentType.REMITO
    )

    assert result.authorization is None
    assert result.document.status == DocumentStatus.PENDING
    assert tax_authority.payloads == []
    assert stock(db, 2) == 3


def test_invoice_c_has_no_vat_breakdown(issuance, tax_authority):
    issuance.execute(2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("1210"))], DocumentType.FACTURA_C)

    payload = tax_authority.payloads[0]
    assert payload.type_code == 11
    assert payload.net_amount == Decimal("1210.00")
    assert payload.vat_amount == Decimal("0.00")
    assert "Iva" not in payload.to_afip()


def test_line_rate_is_kept(issuance, tax_authority):
    result = issuance.execute(
        2,
        [LineRequest(product_id=1, quantity=1, unit_price=Decimal("110.50"), vat_rate=Decimal("10.5"))],
        DocumentType.FACTURA_B,
    )

    assert result.document.lines[0].vat_rate == Decimal("10.5")
    assert [v.aliquot_id for v in tax_authority.payloads[0].vat] == [4]


@pytest.mark.parametrize("lines", [
    [],
    [LineRequest(product_id=1, quantity=0, unit_price=Decimal("10"))],
    [LineRequest(product_id=1, quantity=1, unit_price=Decimal("-1"))],
    [LineRequest(product_id=99, quantity=1, unit_price=Decimal("10"))],
])
def test_invalid_lines(issuance, db, lines):
    with pytest.raises(ValidationError):
        issuance.execute(2, lines, DocumentType.FACTURA_B)
    assert db.query(Factura).count() == 0


def test_invoice_a_for_consumer_is_rejected_before_saving(issuance, db):
    with pytest.raises(ValidationError):
        issuance.execute(2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("10"))], DocumentType.FACTURA_A)
    assert db.query(Factura).count() == 0


def test_unknown_buyer(issuance):
    with pytest.raises(ValidationError):
        issuance.execute(99, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("10"))], DocumentType.FACTURA_B)


def test_debit_note_without_stock_effect(issuance, tax_authority, db):
    invoice = issuance.execute(
        1, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("100"))], DocumentType.FACTURA_A
    ).document

    note = issuance.execute(
        1,
        [LineRequest(product_id=1, quantity=1, unit_price=Decimal("15"))],
        DocumentType.NOTA_DEBITO_A,
        associated_document_id=invoice.id,
    )

    assert note.document.number == "NDA-00000001"
    assert note.authorization.ok
    assert stock(db, 1) == 9
    associated = tax_authority.payloads[-1].associated[0]
    assert (associated.type_code, associated.number) == (1, invoice.voucher_number)


def test_note_must_match_family(issuance):
    invoice = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("100"))], DocumentType.FACTURA_B
    ).document

    with pytest.raises(ValidationError):
        issuance.execute(
            1,
            [LineRequest(product_id=1, quantity=1, unit_price=Decimal("15"))],
            DocumentType.NOTA_DEBITO_A,
            associated_document_id=invoice.id,
        )


def test_lookups_and_authorization_share_one_deadline(issuance, tax_authority, authorization):
    authorization.timeout_seconds = 0.5
    tax_authority.lookup_delay = 0.3
    tax_authority.delay = 0.3

    result = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    )

    assert result.authorization.error_kind == AuthorizationErrorKind.UNAVAILABLE
    assert result.document.status == DocumentStatus.PENDING
    assert result.document.authorization_rejected is False


def test_unexpected_error_keeps_pending_document(issuance, tax_authority, db, monkeypatch):
    def broken(payload):
        raise KeyError("FeDetResp")

    monkeypatch.setattr(tax_authority, "authorize", broken)

    result = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    )

    assert result.authorization.error_kind == AuthorizationErrorKind.UNAVAILABLE
    assert result.document.status == DocumentStatus.PENDING
    assert result.document.authorization_rejected is False
    assert stock(db, 1) == 9


def test_total_mismatch_is_invalid_and_not_sent(authorization, tax_authority, document_repo):
    document = Document(
        number="FB-00000099",
        document_type=DocumentType.FACTURA_B,
        issue_date=date(2026, 10, 19),
        buyer_id=2,
        total=Decimal("100.00"),
        lines=[
            DocumentLine(
                product_id=1,
                quantity=1,
                unit_price=Decimal("50.00"),
                vat_rate=Decimal("21"),
                subtotal=Decimal("50.00"),
            )
        ],
    )

    outcome = authorization.execute(document, document_repo.find_buyer(2))

    assert outcome.error_kind == AuthorizationErrorKind.INVALID
    assert tax_authority.payloads == []


def test_authorization_code_is_never_replaced(issuance, document_repo, db):
    document = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    ).document
    original_code = document.authorization_code

    with pytest.raises(ValidationError):
        document_repo.record_authorization(
            document.id,
            AuthorizationResult(
                code="79999999999999",
                expiry=date(2026, 11, 30),
                voucher_number=document.voucher_number,
                sales_point=document.sales_point,
            ),
        )

    db.expire_all()
    assert db.get(Factura, document.id).cae == original_code


def test_same_authorization_code_can_be_recorded_again(issuance, document_repo):
    document = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("50"))], DocumentType.FACTURA_B
    ).document

    again = document_repo.record_authorization(
        document.id,
        AuthorizationResult(
            code=document.authorization_code,
            expiry=document.authorization_expiry,
            voucher_number=document.voucher_number,
            sales_point=document.sales_point,
        ),
    )

    assert again.authorization_code == document.authorization_code
    assert again.status == DocumentStatus.AUTHORIZED
