# tests/conftest.py
import os
import time

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("APP_ENV", "test")

from datetime import timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.application.services.document_number_allocator import DocumentNumberAllocator
from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase
from app.application.use_cases.cancel_document import CancelDocumentUseCase
from app.application.use_cases.issue_document import IssueDocumentUseCase
from app.domain.exceptions import AuthorityRejected, AuthorityUnavailable
from app.domain.models.authorization import AuthorizationPayload, AuthorizationResult, ServerStatus
from app.domain.ports.tax_authority import TaxAuthority
from app.infrastructure.persistence.database import Base, configure_sqlite
from app.infrastructure.persistence.document_repository_adapter import SQLAlchemyDocumentRepository
from app.infrastructure.persistence.models import Cliente, Producto

CUIT_RI = "20461628312"
CUIT_EMPRESA = "30500010912"


class FakeTaxAuthority(TaxAuthority):
    """AFIP en memoria: numera por tipo de comprobante y guarda lo enviado."""

    def __init__(self):
        self.last_numbers: Dict[int, int] = {}
        self.payloads: List[AuthorizationPayload] = []
        self.status = ServerStatus(app_server="OK", db_server="OK", auth_server="OK")
        self.unavailable = False
        self.rejection: Optional[str] = None
        self.delay: float = 0
        self.lookup_delay: float = 0
        self.reauthentications = 0
        self.resets = 0

    def server_status(self) -> ServerStatus:
        if self.unavailable:
            raise AuthorityUnavailable("Sin conexión con AFIP")
        return self.status

    def last_voucher_number(self, sales_point: int, type_code: int) -> int:
        if self.lookup_delay:
            time.sleep(self.lookup_delay)
        if self.unavailable:
            raise AuthorityUnavailable("Sin conexión con AFIP")
        return self.last_numbers.get(type_code, 0)

    def authorize(self, payload: AuthorizationPayload) -> AuthorizationResult:
        if self.delay:
            time.sleep(self.delay)
        self.payloads.append(payload)
        if self.unavailable:
            raise AuthorityUnavailable("Sin conexión con AFIP")
        if self.rejection:
            raise AuthorityRejected(self.rejection, [10016])
        self.last_numbers[payload.type_code] = payload.voucher_from
        return AuthorizationResult(
            code=f"7{payload.type_code:03d}{payload.voucher_from:010d}",
            expiry=payload.issue_date + timedelta(days=10),
            voucher_number=payload.voucher_from,
            sales_point=payload.sales_point,
        )

    def force_reauthentication(self) -> None:
        self.reauthentications += 1

    def reset(self) -> None:
        self.resets += 1


@pytest.fixture
def engine():
    engine = configure_sqlite(
        create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    session.add_all([
        Cliente(id=1, nombre="Ferretería Central SRL", cuit_dni=CUIT_RI, situacion_iva="RESPONSABLE_INSCRIPTO"),
        Cliente(id=2, nombre="Consumidor Final", cuit_dni=None, situacion_iva="CONSUMIDOR_FINAL"),
        Cliente(id=3, nombre="Juan Pérez", cuit_dni="30123456", situacion_iva="MONOTRIBUTO"),
        Producto(id=1, descripcion="Tornillo 8mm x100", stock=10),
        Producto(id=2, descripcion="Taladro percutor", stock=5),
    ])
    session.commit()
    yield session
    session.close()


@pytest.fixture
def tax_authority():
    return FakeTaxAuthority()


@pytest.fixture
def document_repo(db):
    return SQLAlchemyDocumentRepository(db)


@pytest.fixture
def authorization(tax_authority, document_repo):
    return AuthorizeDocumentUseCase(
        tax_authority, document_repo, sales_point=1, issuer_tax_id=CUIT_RI, timeout_seconds=2
    )


@pytest.fixture
def issuance(document_repo, authorization):
    return IssueDocumentUseCase(
        document_repo,
        DocumentNumberAllocator(document_repo, max_attempts=5),
        authorization,
        default_vat_rate=Decimal("21"),
        max_allocation_attempts=5,
    )


@pytest.fixture
def cancellation(document_repo, issuance, authorization):
    return CancelDocumentUseCase(document_repo, issuance, authorization)
