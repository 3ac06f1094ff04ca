# app/application/use_cases/authorize_document.py
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
import time
from typing import List, Optional

import config
from app.domain.exceptions import AuthorityRejected, AuthorityUnavailable, ValidationError
from app.domain.models.authorization import (
    AssociatedVoucher,
    AuthorizationErrorKind,
    AuthorizationOutcome,
    AuthorizationPayload,
)
from app.domain.models.document import BuyerInfo, Document
from app.domain.ports.document_repository import DocumentRepository
from app.domain.ports.tax_authority import TaxAuthority
from app.domain.services import document_catalog, receiver_resolution, tax_computation
from app.domain.services.document_catalog import DocumentTypeInfo

logger = logging.getLogger(__name__)

# Las llamadas a AFIP corren en este pool para poder abandonarlas al vencer el timeout
_AFIP_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="afip")

# Rechazos que indican que el cliente requiere otra clase de comprobante (MiPyME / FCE)
ALTERNATE_CLASS_MARKERS = (
    "factura de crédito electrónica",
    "factura de credito electronica",
    "(fce)",
    "mipyme",
)


class AuthorizeDocumentUseCase:
    """
    Solicita a AFIP el CAE de un único comprobante.

    Nunca lanza por fallas de AFIP: devuelve un AuthorizationOutcome con el
    resultado o con el tipo de error, para que el llamador decida qué hacer.
    """

    def __init__(
        self,
        tax_authority: TaxAuthority,
        document_repo: DocumentRepository,
        sales_point: int = config.AFIP_SALES_POINT,
        issuer_tax_id: str = config.AFIP_CUIT,
        timeout_seconds: float = config.AFIP_TIMEOUT_SECONDS,
    ):
        self.tax_authority = tax_authority
        self.document_repo = document_repo
        self.sales_point = sales_point
        self.issuer_tax_id = issuer_tax_id
        self.timeout_seconds = timeout_seconds

    def execute(self, document: Document, buyer: BuyerInfo) -> AuthorizationOutcome:
        info = document_catalog.get_info(document.document_type)
        context = (
            f"tipo={info.document_type.value} pto_vta={self.sales_point} cbte_tipo={info.afip_code}"
        )
        logger.info(f"[{document.number}] Solicitando autorización a AFIP ({context}).")
        deadline = time.monotonic() + self.timeout_seconds

        try:
            self._check_server_status(deadline)
            payload = self.build_payload(document, buyer, info, deadline)
            result = self._call(deadline, self.tax_authority.authorize, payload)
        except ValidationError as e:
            logger.error(f"[{document.number}] Datos inválidos para AFIP ({context}): {e}")
            return AuthorizationOutcome.failure(AuthorizationErrorKind.INVALID, str(e))
        except AuthorityRejected as e:
            kind = self._classify_rejection(str(e))
            logger.error(f"[{document.number}] AFIP rechazó el comprobante ({context}, {kind.value}): {e}")
            return AuthorizationOutcome.failure(kind, str(e))
        except AuthorityUnavailable as e:
            logger.error(f"[{document.number}] AFIP no disponible ({context}): {e}")
            return AuthorizationOutcome.failure(AuthorizationErrorKind.UNAVAILABLE, str(e))
        except Exception as e:
            # Una respuesta imprevista nunca debe impedir que el comprobante quede PENDIENTE
            logger.error(f"[{document.number}] Error inesperado al autorizar ({context}): {e}", exc_info=True)
            return AuthorizationOutcome.failure(AuthorizationErrorKind.UNAVAILABLE, f"Error inesperado: {e}")

        logger.info(
            f"[{document.number}] CAE {result.code} obtenido, comprobante AFIP "
            f"{result.sales_point}-{result.voucher_number} ({context})."
        )
        return AuthorizationOutcome.success(result)

    def build_payload(
        self, document: Document, buyer: BuyerInfo, info: DocumentTypeInfo, deadline: Optional[float] = None
    ) -> AuthorizationPayload:
        if deadline is None:
            deadline = time.monotonic() + self.timeout_seconds
        doc_type, doc_number = receiver_resolution.resolve_receiver(document.document_type, buyer)
        vat_condition = receiver_resolution.receiver_vat_condition(document.document_type, buyer)

        totals = tax_computation.aggregate(
            ((line.subtotal, line.vat_rate) for line in document.lines),
            with_vat=info.family != "C",
        )
        if abs(totals.gross - document.total) > tax_computation.CENT:
            raise ValidationError(
                f"El total del comprobante ({document.total}) no coincide con la suma de los renglones ({totals.gross})"
            )

        last_voucher = self._call(deadline, self.tax_authority.last_voucher_number, self.sales_point, info.afip_code)
        voucher_number = last_voucher + 1
        logger.info(f"[{document.number}] Número de comprobante AFIP: último {last_voucher}, nuevo {voucher_number}.")

        associated: List[AssociatedVoucher] = []
        if info.is_note:
            associated.append(self._associated_voucher(document, info, deadline))

        return AuthorizationPayload(
            sales_point=self.sales_point,
            type_code=info.afip_code,
            receiver_doc_type=doc_type,
            receiver_doc_number=doc_number,
            receiver_vat_condition=vat_condition,
            voucher_from=voucher_number,
            voucher_to=voucher_number,
            issue_date=document.issue_date,
            net_amount=totals.net,
            vat_amount=totals.tax,
            total_amount=totals.gross,
            vat=totals.vat,
            associated=associated,
        )

    def _associated_voucher(self, document: Document, info: DocumentTypeInfo, deadline: float) -> AssociatedVoucher:
        """
        Comprobante asociado de una nota de crédito/débito. Si la nota está
        vinculada a un comprobante autorizado se usan sus datos; si no, el
        último comprobante autorizado de la factura de la misma familia.
        """
        invoice_code = document_catalog.afip_code(document_catalog.invoice_for_family(info.family))

        if document.associated_document_id is not None:
            original = self.document_repo.find_by_id(document.associated_document_id)
            if original is None or original.voucher_number is None:
                raise ValidationError(
                    f"El comprobante asociado {document.associated_document_id} no tiene número de AFIP"
                )
            return AssociatedVoucher(
                type_code=document_catalog.afip_code(original.document_type),
                sales_point=original.sales_point or self.sales_point,
                number=original.voucher_number,
                issuer_tax_id=self.issuer_tax_id,
                issue_date=original.issue_date,
            )

        last_invoice = self._call(deadline, self.tax_authority.last_voucher_number, self.sales_point, invoice_code)
        if last_invoice <= 0:
            raise ValidationError("No hay comprobante autorizado para asociar a la nota")
        return AssociatedVoucher(
            type_code=invoice_code,
            sales_point=self.sales_point,
            number=last_invoice,
            issuer_tax_id=self.issuer_tax_id,
        )

    def _check_server_status(self, deadline: float) -> None:
        status = self._call(deadline, self.tax_authority.server_status)
        if not status.healthy:
            raise AuthorityUnavailable(
                f"Servidores de AFIP con problemas: app={status.app_server} "
                f"db={status.db_server} auth={status.auth_server}"
            )

    def _call(self, deadline: float, fn, *args):
        """Ejecuta la llamada a AFIP compitiendo contra el tiempo que le queda a toda la autorización."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise AuthorityUnavailable(f"AFIP no respondió en {self.timeout_seconds} segundos")
        future = _AFIP_EXECUTOR.submit(fn, *args)
        try:
            return future.result(timeout=remaining)
        except FuturesTimeout:
            future.cancel()
            raise AuthorityUnavailable(f"AFIP no respondió en {self.timeout_seconds} segundos") from None

    @staticmethod
    def _classify_rejection(message: str) -> AuthorizationErrorKind:
        lowered = message.lower()
        if any(marker in lowered for marker in ALTERNATE_CLASS_MARKERS):
            return AuthorizationErrorKind.ALTERNATE_CLASS_REQUIRED
        return AuthorizationErrorKind.REJECTED


def apply_outcome(document_repo: DocumentRepository, document: Document, outcome: AuthorizationOutcome) -> Document:
    """
    Vuelca el resultado de AFIP sobre el comprobante ya guardado.

    - Éxito: CAE, vencimiento y número de AFIP; estado AUTHORIZED.
    - Rechazo: queda guardado pero marcado como no autorizado, con el motivo.
    - AFIP no disponible: queda PENDING sin datos de autorización.
    """
    if outcome.ok:
        return document_repo.record_authorization(document.id, outcome.result)
    if outcome.is_rejection:
        return document_repo.mark_rejected(document.id, f"{outcome.error_kind.value}: {outcome.message}")
    logger.warning(
        f"[{document.number}] Comprobante guardado sin CAE; queda PENDING para reautorizar manualmente."
    )
    return document
