# tests/test_register_payment.py
from decimal import Decimal

import pytest

from app.application.use_cases.reauthorize_document import ReauthorizeDocumentUseCase
from app.application.use_cases.register_payment import RegisterPaymentUseCase
from app.domain.exceptions import DocumentNotFound, ValidationError
from app.domain.models.document import DocumentStatus, DocumentType, LineRequest
from app.infrastructure.persistence.models import Pago


@pytest.fixture
def payments(document_repo):
    return RegisterPaymentUseCase(document_repo)


@pytest.fixture
def invoice(issuance):
    return issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("1000.00"))], DocumentType.FACTURA_B
    ).document


def test_partial_then_full_payment(payments, invoice, db):
    partial = payments.execute(invoice.id, Decimal("400"), "EFECTIVO")
    assert partial.paid == Decimal("400.00")
    assert partial.status == DocumentStatus.AUTHORIZED

    full = payments.execute(invoice.id, Decimal("600.00"), "TRANSFERENCIA", "saldo")
    assert full.paid == Decimal("1000.00")
    assert full.status == DocumentStatus.PAID
    assert db.query(Pago).filter(Pago.factura_id == invoice.id).count() == 2


def test_non_positive_amount(payments, invoice):
    with pytest.raises(ValidationError):
        payments.execute(invoice.id, Decimal("0"))


def test_cancelled_document_rejects_payments(payments, invoice, cancellation):
    cancellation.execute(invoice.id)
    with pytest.raises(ValidationError):
        payments.execute(invoice.id, Decimal("10"))


def test_unknown_document(payments):
    with pytest.raises(DocumentNotFound):
        payments.execute(12345, Decimal("10"))


def test_late_authorization_keeps_paid_status(issuance, payments, tax_authority, document_repo):
    tax_authority.unavailable = True
    document = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("100"))], DocumentType.FACTURA_B
    ).document
    payments.execute(document.id, Decimal("100"))

    tax_authority.unavailable = False
    result = ReauthorizeDocumentUseCase(document_repo, issuance.authorization).execute(document.id)

    assert result.document.authorization_code is not None
    assert result.document.status == DocumentStatus.PAID
