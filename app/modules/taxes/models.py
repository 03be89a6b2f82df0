from app.database.database import Base
from sqlalchemy import Column, String, Boolean, Integer, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TimestampMixin


class VatRate(Base, TimestampMixin):
    """Alícuota de IVA con su código AFIP (AlicIva)"""
    __tablename__ = "vat_rates"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    afip_id = Column(Integer, nullable=False, index=True)  # ej. 5 = 21%
    name = Column(String(100), nullable=False)  # ej. "IVA 21%"
    rate = Column(Numeric(5, 2), nullable=False)  # Porcentaje: 21.00, 10.50
    is_active = Column(Boolean, default=True, nullable=False)
    is_editable = Column(Boolean, default=True)  # False para alícuotas globales AFIP

    # Si company_id es NULL, es una alícuota global (AFIP)
    # Si company_id tiene valor, es una alícuota propia de la empresa
    company_id = Column(UUID(as_uuid=True), nullable=True, index=True)

    __table_args__ = (
        UniqueConstraint("company_id", "afip_id", name="uq_vat_rate_company_afip_id"),
    )
