from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime


class VatRateBase(BaseModel):
    afip_id: int = Field(..., ge=1, description="Código AFIP de la alícuota (ej. 5 para 21%)")
    name: str = Field(..., min_length=1, max_length=100, description="Nombre de la alícuota (ej. 'IVA 21%')")
    rate: Decimal = Field(..., ge=0, le=100, description="Porcentaje de la alícuota (ej. 21 para 21%)")
    is_active: bool = True


class VatRateCreate(VatRateBase):
    """Esquema para crear una alícuota propia de la empresa"""
    pass


class VatRateUpdate(BaseModel):
    """Esquema para actualizar una alícuota (solo propias)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class VatRateOut(VatRateBase):
    id: UUID
    is_editable: bool
    company_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class VatRateList(BaseModel):
    vat_rates: List[VatRateOut]
    total: int
    limit: int
    offset: int


class ExtraTaxAmount(BaseModel):
    """Tributo fuera del IVA (IIBB, impuestos internos)"""
    tax_id: int = Field(..., description="Código AFIP del tributo (ej. 7 = IIBB, 4 = impuestos internos)")
    amount: Decimal = Field(..., ge=0, description="Importe del tributo")


class VatBreakdownItem(BaseModel):
    """Importe de IVA para una alícuota"""
    vat_rate_id: int = Field(..., description="Código AFIP de la alícuota")
    base_amount: Decimal = Field(..., description="Base imponible")
    amount: Decimal = Field(..., description="Importe de IVA")


class InvoiceAmountInput(BaseModel):
    """Importes de la venta antes del descuento y total final a conciliar"""
    subtotal_net: Decimal = Field(..., ge=0, description="Neto gravado antes del descuento")
    vat_amount: Decimal = Field(Decimal("0"), ge=0, description="IVA total antes del descuento")
    final_total: Decimal = Field(..., ge=0, description="Total de la venta luego del descuento")
    extra_taxes: List[ExtraTaxAmount] = Field(default_factory=list, description="Tributos")
    vat_breakdown: List[VatBreakdownItem] = Field(default_factory=list, description="IVA por alícuota")

    @field_validator('vat_breakdown')
    @classmethod
    def validate_breakdown(cls, v: List[VatBreakdownItem]) -> List[VatBreakdownItem]:
        for item in v:
            if item.base_amount < 0 or item.amount < 0:
                raise ValueError('Las bases e importes de IVA no pueden ser negativos')
        return v


class ReconciledInvoiceAmounts(BaseModel):
    """Importes conciliados listos para enviar a AFIP"""
    net_amount: Decimal
    vat_total: Decimal
    vat_breakdown: List[VatBreakdownItem]
    extra_taxes: List[ExtraTaxAmount] = []
    extra_taxes_total: Decimal
    grand_total: Decimal
    adjustment_factor: Decimal = Decimal("1")
