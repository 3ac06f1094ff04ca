# app/infrastructure/api/dependencies.py
import logging
import threading
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from app.application.services.document_number_allocator import DocumentNumberAllocator
from app.application.use_cases.authorize_document import AuthorizeDocumentUseCase
from app.application.use_cases.cancel_document import CancelDocumentUseCase
from app.application.use_cases.issue_document import IssueDocumentUseCase
from app.application.use_cases.register_payment import RegisterPaymentUseCase
from app.domain.ports.credential_provider import ChainedCredentialProvider
from app.domain.ports.tax_authority import TaxAuthority
from app.infrastructure.external.afip_adapter import AfipSdkAdapter
from app.infrastructure.external.file_credential_adapter import FileCredentialProvider
from app.infrastructure.persistence.credential_provider_adapter import SQLAlchemyCredentialProvider
from app.infrastructure.persistence.database import SessionLocal
from app.infrastructure.persistence.document_repository_adapter import SQLAlchemyDocumentRepository

logger = logging.getLogger(__name__)

_tax_authority: Optional[TaxAuthority] = None
_tax_authority_lock = threading.Lock()


def get_db():
    """Una sesión por request: commit si todo salió bien, rollback si hubo excepción."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        logger.error("Error durante la request. Iniciando rollback.", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def build_tax_authority() -> TaxAuthority:
    # Los certificados de la base se leen con una sesión propia: el cliente vive más que la request
    db_provider = SQLAlchemyCredentialProvider(SessionLocal)
    return AfipSdkAdapter(ChainedCredentialProvider([db_provider, FileCredentialProvider()]))


def get_tax_authority_client() -> TaxAuthority:
    """Cliente de AFIP compartido por todo el proceso, creado en el primer uso."""
    global _tax_authority
    with _tax_authority_lock:
        if _tax_authority is None:
            _tax_authority = build_tax_authority()
        return _tax_authority


def reset_tax_authority_client() -> None:
    global _tax_authority
    with _tax_authority_lock:
        if _tax_authority is not None:
            _tax_authority.reset()
        _tax_authority = None


def get_document_repository(db: Session = Depends(get_db)) -> SQLAlchemyDocumentRepository:
    return SQLAlchemyDocumentRepository(db)


def get_authorization_use_case(
    document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository),
    tax_authority: TaxAuthority = Depends(get_tax_authority_client),
) -> AuthorizeDocumentUseCase:
    return AuthorizeDocumentUseCase(tax_authority, document_repo)


def get_issue_use_case(
    document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository),
    authorization: AuthorizeDocumentUseCase = Depends(get_authorization_use_case),
) -> IssueDocumentUseCase:
    return IssueDocumentUseCase(document_repo, DocumentNumberAllocator(document_repo), authorization)


def get_cancel_use_case(
    document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository),
    issuance: IssueDocumentUseCase = Depends(get_issue_use_case),
    authorization: AuthorizeDocumentUseCase = Depends(get_authorization_use_case),
) -> CancelDocumentUseCase:
    return CancelDocumentUseCase(document_repo, issuance, authorization)


def get_payment_use_case(
    document_repo: SQLAlchemyDocumentRepository = Depends(get_document_repository),
) -> RegisterPaymentUseCase:
    return RegisterPaymentUseCase(document_repo)
