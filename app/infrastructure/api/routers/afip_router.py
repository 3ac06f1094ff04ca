# app/infrastructure/api/routers/afip_router.py
import logging

from fastapi import APIRouter, Depends, Query

import config
from app.domain.exceptions import InvoicingError, ValidationError
from app.domain.models.document import DocumentType
from app.domain.ports.tax_authority import TaxAuthority
from app.domain.services import document_catalog
from app.infrastructure.api.dependencies import get_tax_authority_client
from app.infrastructure.api.errors import to_http

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/afip", tags=["AFIP"])


@router.get("/estado", summary="Estado de los servidores de AFIP")
def server_status(tax_authority: TaxAuthority = Depends(get_tax_authority_client)):
    try:
        status = tax_authority.server_status()
    except InvoicingError as e:
        raise to_http(e) from e
    return {
        "AppServer": status.app_server,
        "DbServer": status.db_server,
        "AuthServer": status.auth_server,
        "healthy": status.healthy,
        "entorno": config.AFIP_ENVIRONMENT,
    }


@router.get("/ultimo-comprobante", summary="Último comprobante autorizado por tipo")
def last_voucher(
    tipo: DocumentType = Query(DocumentType.FACTURA_B),
    punto_venta: int = Query(config.AFIP_SALES_POINT),
    tax_authority: TaxAuthority = Depends(get_tax_authority_client),
):
    try:
        if not document_catalog.requires_authorization(tipo):
            raise ValidationError(f"{tipo.value} no se autoriza ante AFIP")
        type_code = document_catalog.afip_code(tipo)
        number = tax_authority.last_voucher_number(punto_venta, type_code)
    except InvoicingError as e:
        raise to_http(e) from e
    return {"tipo": tipo.value, "cbte_tipo": type_code, "punto_venta": punto_venta, "ultimo": number}


@router.post("/token", summary="Forzar un nuevo ticket de acceso")
def force_new_token(tax_authority: TaxAuthority = Depends(get_tax_authority_client)):
    try:
        tax_authority.force_reauthentication()
    except InvoicingError as e:
        raise to_http(e) from e
    logger.info("Ticket de acceso de AFIP regenerado manualmente.")
    return {"status": "ok"}
