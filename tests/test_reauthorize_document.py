# tests/test_reauthorize_document.py
from decimal import Decimal

import pytest

from app.application.use_cases.reauthorize_document import ReauthorizeDocumentUseCase
from app.domain.exceptions import DocumentNotFound, ValidationError
from app.domain.models.authorization import AuthorizationErrorKind
from app.domain.models.document import DocumentStatus, DocumentType, LineRequest


@pytest.fixture
def reauthorization(document_repo, authorization):
    return ReauthorizeDocumentUseCase(document_repo, authorization)


def issue_b(issuance):
    return issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("100"))], DocumentType.FACTURA_B
    ).document


def test_pending_document_gets_authorized(issuance, reauthorization, tax_authority):
    tax_authority.unavailable = True
    pending = issue_b(issuance)
    assert pending.status == DocumentStatus.PENDING

    tax_authority.unavailable = False
    result = reauthorization.execute(pending.id)

    assert result.authorization.ok
    assert result.document.status == DocumentStatus.AUTHORIZED
    assert result.document.voucher_number == 1


def test_rejected_document_can_be_retried(issuance, reauthorization, tax_authority):
    tax_authority.rejection = "10015: DocNro inválido"
    rejected = issue_b(issuance)
    assert rejected.authorization_rejected

    tax_authority.rejection = None
    result = reauthorization.execute(rejected.id)

    assert result.document.authorization_rejected is False
    assert result.document.rejection_reason is None
    assert result.document.is_authorized


def test_still_unavailable_leaves_document_pending(issuance, reauthorization, tax_authority):
    tax_authority.unavailable = True
    pending = issue_b(issuance)

    result = reauthorization.execute(pending.id)

    assert result.authorization.error_kind == AuthorizationErrorKind.UNAVAILABLE
    assert result.document.status == DocumentStatus.PENDING


def test_already_authorized(issuance, reauthorization):
    with pytest.raises(ValidationError):
        reauthorization.execute(issue_b(issuance).id)


def test_delivery_note_cannot_be_authorized(issuance, reauthorization):
    remito = issuance.execute(
        2, [LineRequest(product_id=1, quantity=1, unit_price=Decimal("100"))], DocumentType.REMITO
    ).document
    with pytest.raises(ValidationError):
        reauthorization.execute(remito.id)


def test_unknown_document(reauthorization):
    with pytest.raises(DocumentNotFound):
        reauthorization.execute(404)
