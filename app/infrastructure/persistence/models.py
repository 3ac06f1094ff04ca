# app/infrastructure/persistence/models.py
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, validates

from app.domain.exceptions import ValidationError
from .database import Base


class Cliente(Base):
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(200), nullable=False)
    cuit_dni = Column(String(20))
    situacion_iva = Column(String(40), nullable=False, default="CONSUMIDOR_FINAL")


class Producto(Base):
    __tablename__ = "productos"

    id = Column(Integer, primary_key=True)
    descripcion = Column(String(200), nullable=False)
    stock = Column(Integer, nullable=False, default=0)


class Factura(Base):
    """Comprobante de venta: facturas, notas de crédito/débito y remitos."""
    __tablename__ = "facturas"
    __table_args__ = (UniqueConstraint("prefijo", "numero", name="uq_facturas_prefijo_numero"),)

    id = Column(Integer, primary_key=True)
    numero = Column(String(30), nullable=False, unique=True, index=True)
    prefijo = Column(String(10), nullable=False)
    tipo_comprobante = Column(String(30), nullable=False)
    fecha = Column(Date, nullable=False)
    cliente_id = Column(Integer, ForeignKey("clientes.id"), nullable=False)
    estado = Column(String(20), nullable=False, default="PENDING")
    total = Column(Numeric(14, 2), nullable=False)
    pagado = Column(Numeric(14, 2), nullable=False, default=0)

    # --- Datos de AFIP ---
    cae = Column(String(20))
    vencimiento_cae = Column(Date)
    afip_comprobante = Column(Integer)
    punto_venta = Column(Integer)
    autorizacion_rechazada = Column(Boolean, nullable=False, default=False)
    motivo_rechazo = Column(Text)

    comprobante_asociado_id = Column(Integer, ForeignKey("facturas.id"))

    cliente = relationship("Cliente")
    detalles = relationship("DetalleFactura", back_populates="factura", order_by="DetalleFactura.id")
    pagos = relationship("Pago", back_populates="factura", order_by="Pago.id")

    @validates("cae")
    def _validar_cae(self, key, value):
        # Un CAE emitido por AFIP no se reemplaza nunca
        if self.cae is not None and value != self.cae:
            raise ValidationError(f"El comprobante {self.numero} ya tiene CAE {self.cae}")
        return value


class DetalleFactura(Base):
    __tablename__ = "detalles_factura"

    id = Column(Integer, primary_key=True)
    factura_id = Column(Integer, ForeignKey("facturas.id"), nullable=False)
    producto_id = Column(Integer, ForeignKey("productos.id"), nullable=False)
    cantidad = Column(Integer, nullable=False)
    precio_unitario = Column(Numeric(14, 2), nullable=False)
    alicuota_iva = Column(Numeric(5, 2), nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False)

    factura = relationship("Factura", back_populates="detalles")


class Pago(Base):
    __tablename__ = "pagos"

    id = Column(Integer, primary_key=True)
    factura_id = Column(Integer, ForeignKey("facturas.id"), nullable=False)
    monto = Column(Numeric(14, 2), nullable=False)
    metodo_pago = Column(String(40))
    observaciones = Column(Text)
    fecha = Column(DateTime, nullable=False, default=datetime.now)

    factura = relationship("Factura", back_populates="pagos")


class SecuenciaComprobante(Base):
    """Último número emitido por prefijo de numeración. Nunca retrocede."""
    __tablename__ = "secuencias_comprobante"

    prefijo = Column(String(10), primary_key=True)
    ultimo_numero = Column(Integer, nullable=False, default=0)


class CertificadoAfip(Base):
    __tablename__ = "certificados_afip"

    id = Column(Integer, primary_key=True)
    nombre = Column(String(100), nullable=False, unique=True)
    tipo = Column(String(20), nullable=False)  # CERTIFICATE | PRIVATE_KEY
    entorno = Column(String(10))  # PROD | DEV | NULL (cualquier entorno)
    contenido = Column(Text, nullable=False)
    descripcion = Column(Text)
    activo = Column(Boolean, nullable=False, default=True)
    creado_en = Column(DateTime, nullable=False, default=datetime.now)
