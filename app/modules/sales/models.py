"""
Modelos SQLAlchemy para ventas

Solo se modelan los importes que intervienen en la autorización ante AFIP:
subtotal neto, IVA por alícuota, tributos (IIBB, impuestos internos) y total
con descuento. Los importes conciliados se guardan en la misma venta.
"""

from app.database.database import Base
from sqlalchemy import Column, String, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin


class Sale(Base, TenantMixin, TimestampMixin):
    __tablename__ = "sales"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    receipt_number = Column(String(50), nullable=True, index=True)

    # Importes antes del descuento
    subtotal = Column(Numeric(15, 2), nullable=False, default=0)
    total_iva_amount = Column(Numeric(15, 2), nullable=False, default=0)
    iibb = Column(Numeric(15, 2), nullable=False, default=0)
    internal_tax = Column(Numeric(15, 2), nullable=False, default=0)
    # Total final con descuento
    total = Column(Numeric(15, 2), nullable=False)

    # Importes conciliados enviados a AFIP
    afip_net_amount = Column(Numeric(15, 2), nullable=True)
    afip_iva_total = Column(Numeric(15, 2), nullable=True)
    afip_tributes_total = Column(Numeric(15, 2), nullable=True)
    afip_total = Column(Numeric(15, 2), nullable=True)
    amounts_reconciled_at = Column(DateTime, nullable=True)

    ivas = relationship("SaleIva", back_populates="sale", cascade="all, delete-orphan")


class SaleIva(Base, TimestampMixin):
    """IVA de la venta por alícuota"""
    __tablename__ = "sale_ivas"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    sale_id = Column(UUID(as_uuid=True), ForeignKey("sales.id"), nullable=False, index=True)
    rate = Column(Numeric(5, 2), nullable=False)  # Porcentaje: 21.00, 10.50
    base_amount = Column(Numeric(15, 2), nullable=False, default=0)
    amount = Column(Numeric(15, 2), nullable=False, default=0)

    sale = relationship("Sale", back_populates="ivas")
