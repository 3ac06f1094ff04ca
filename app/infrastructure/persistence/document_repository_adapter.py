# app/infrastructure/persistence/document_repository_adapter.py
from contextlib import contextmanager
from decimal import Decimal
from typing import Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.domain.exceptions import DocumentNotFound, NumberAllocationConflict
from app.domain.models.authorization import AuthorizationResult
from app.domain.models.document import (
    BuyerInfo,
    Document,
    DocumentLine,
    DocumentStatus,
    DocumentType,
    TaxCondition,
)
from app.domain.models.product import ProductStock
from app.domain.ports.document_repository import DocumentRepository
from app.domain.services import document_catalog
from .models import Cliente, DetalleFactura, Factura, Pago, Producto, SecuenciaComprobante


class SQLAlchemyDocumentRepository(DocumentRepository):
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def atomic(self):
        with self.db.begin_nested():
            yield

    def _get(self, document_id: int) -> Factura:
        factura = self.db.get(Factura, document_id)
        if factura is None:
            raise DocumentNotFound(f"Comprobante no encontrado: {document_id}")
        return factura

    def find_by_id(self, document_id: int) -> Optional[Document]:
        factura = self.db.get(Factura, document_id)
        return self._to_domain(factura) if factura else None

    def lock_document(self, document_id: int) -> Optional[Document]:
        factura = self.db.execute(
            select(Factura)
            .where(Factura.id == document_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._to_domain(factura) if factura else None

    def find_by_number(self, number: str) -> Optional[Document]:
        factura = self.db.query(Factura).filter(Factura.numero == number).first()
        return self._to_domain(factura) if factura else None

    def find_buyer(self, buyer_id: int) -> Optional[BuyerInfo]:
        cliente = self.db.get(Cliente, buyer_id)
        if not cliente:
            return None
        return BuyerInfo(
            id=cliente.id,
            name=cliente.nombre,
            tax_id=cliente.cuit_dni,
            tax_condition=TaxCondition(cliente.situacion_iva),
        )

    # --- Numeración ---

    def highest_number(self, prefix: str) -> Optional[str]:
        return self.db.query(func.max(Factura.numero)).filter(Factura.numero.like(f"{prefix}%")).scalar()

    def number_exists(self, number: str) -> bool:
        return self.db.query(Factura.id).filter(Factura.numero == number).first() is not None

    def sequence_value(self, prefix: str) -> int:
        secuencia = self.db.get(SecuenciaComprobante, prefix)
        return secuencia.ultimo_numero if secuencia else 0

    def advance_sequence(self, prefix: str, value: int) -> None:
        secuencia = self.db.execute(
            select(SecuenciaComprobante)
            .where(SecuenciaComprobante.prefijo == prefix)
            .with_for_update()
        ).scalar_one_or_none()

        if secuencia is None:
            try:
                with self.db.begin_nested():
                    self.db.add(SecuenciaComprobante(prefijo=prefix, ultimo_numero=value))
                    self.db.flush()
                return
            except IntegrityError:
                # Otra transacción creó la secuencia al mismo tiempo
                secuencia = self.db.execute(
                    select(SecuenciaComprobante)
                    .where(SecuenciaComprobante.prefijo == prefix)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        if value > secuencia.ultimo_numero:
            secuencia.ultimo_numero = value
            self.db.flush()

    # --- Stock ---

    def lock_stock(self, product_ids: Iterable[int]) -> Dict[int, ProductStock]:
        productos = self.db.execute(
            select(Producto)
            .where(Producto.id.in_(list(product_ids)))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars()
        return {
            p.id: ProductStock(id=p.id, description=p.descripcion, stock=p.stock)
            for p in productos
        }

    def adjust_stock(self, product_id: int, delta: int) -> None:
        producto = self.db.get(Producto, product_id)
        producto.stock = producto.stock + delta
        self.db.flush()

    # --- Comprobantes ---

    def add_document(self, document: Document) -> Document:
        factura = Factura(
            numero=document.number,
            prefijo=document_catalog.prefix_for(document.document_type),
            tipo_comprobante=document.document_type.value,
            fecha=document.issue_date,
            cliente_id=document.buyer_id,
            estado=document.status.value,
            total=document.total,
            pagado=document.paid,
            comprobante_asociado_id=document.associated_document_id,
            autorizacion_rechazada=False,
        )
        factura.detalles = [
            DetalleFactura(
                producto_id=line.product_id,
                cantidad=line.quantity,
                precio_unitario=line.unit_price,
                alicuota_iva=line.vat_rate,
                subtotal=line.subtotal,
            )
            for line in document.lines
        ]

        try:
            with self.db.begin_nested():
                self.db.add(factura)
                self.db.flush()
        except IntegrityError as e:
            if self.number_exists(document.number):
                raise NumberAllocationConflict(document.number) from e
            raise
        return self._to_domain(factura)

    def record_authorization(self, document_id: int, result: AuthorizationResult) -> Document:
        factura = self._get(document_id)
        factura.cae = result.code
        factura.vencimiento_cae = result.expiry
        factura.afip_comprobante = result.voucher_number
        factura.punto_venta = result.sales_point
        factura.autorizacion_rechazada = False
        factura.motivo_rechazo = None
        if factura.estado == DocumentStatus.PENDING.value:
            factura.estado = DocumentStatus.AUTHORIZED.value
        self.db.flush()
        return self._to_domain(factura)

    def mark_rejected(self, document_id: int, reason: str) -> Document:
        factura = self._get(document_id)
        factura.autorizacion_rechazada = True
        factura.motivo_rechazo = reason
        self.db.flush()
        return self._to_domain(factura)

    def update_status(self, document_id: int, status: DocumentStatus) -> Document:
        factura = self._get(document_id)
        factura.estado = status.value
        self.db.flush()
        return self._to_domain(factura)

    def add_payment(self, document_id: int, amount: Decimal, method: Optional[str], notes: Optional[str]) -> Document:
        factura = self._get(document_id)
        self.db.add(Pago(factura_id=factura.id, monto=amount, metodo_pago=method, observaciones=notes))
        factura.pagado = Decimal(factura.pagado or 0) + amount
        self.db.flush()
        return self._to_domain(factura)

    @staticmethod
    def _to_domain(factura: Factura) -> Document:
        return Document(
            id=factura.id,
            number=factura.numero,
            document_type=DocumentType(factura.tipo_comprobante),
            issue_date=factura.fecha,
            buyer_id=factura.cliente_id,
            status=DocumentStatus(factura.estado),
            total=factura.total,
            paid=factura.pagado,
            authorization_code=factura.cae,
            authorization_expiry=factura.vencimiento_cae,
            voucher_number=factura.afip_comprobante,
            sales_point=factura.punto_venta,
            authorization_rejected=bool(factura.autorizacion_rechazada),
            rejection_reason=factura.motivo_rechazo,
            associated_document_id=factura.comprobante_asociado_id,
            lines=[
                DocumentLine(
                    id=d.id,
                    product_id=d.producto_id,
                    quantity=d.cantidad,
                    unit_price=d.precio_unitario,
                    vat_rate=d.alicuota_iva,
                    subtotal=d.subtotal,
                )
                for d in factura.detalles
            ],
        )
