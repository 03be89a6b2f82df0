from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime


class SaleIvaCreate(BaseModel):
    rate: Decimal = Field(..., ge=0, le=100, description="Porcentaje de IVA (ej. 21)")
    base_amount: Decimal = Field(..., ge=0, description="Base imponible")
    amount: Decimal = Field(..., ge=0, description="Importe de IVA")


class SaleIvaOut(SaleIvaCreate):
    id: UUID

    model_config = {"from_attributes": True}


class SaleCreate(BaseModel):
    """Esquema para registrar una venta con sus importes antes del descuento"""
    receipt_number: Optional[str] = Field(None, max_length=50)
    subtotal: Decimal = Field(..., ge=0, description="Neto antes del descuento")
    total_iva_amount: Decimal = Field(Decimal("0"), ge=0, description="IVA total antes del descuento")
    iibb: Decimal = Field(Decimal("0"), ge=0, description="Percepción de Ingresos Brutos")
    internal_tax: Decimal = Field(Decimal("0"), ge=0, description="Impuestos internos")
    total: Decimal = Field(..., gt=0, description="Total final con descuento")
    ivas: List[SaleIvaCreate] = Field(default_factory=list, description="IVA por alícuota")

    @field_validator('receipt_number')
    @classmethod
    def validate_receipt_number(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            return v or None
        return v


class SaleOut(BaseModel):
    id: UUID
    receipt_number: Optional[str] = None
    subtotal: Decimal
    total_iva_amount: Decimal
    iibb: Decimal
    internal_tax: Decimal
    total: Decimal
    afip_net_amount: Optional[Decimal] = None
    afip_iva_total: Optional[Decimal] = None
    afip_tributes_total: Optional[Decimal] = None
    afip_total: Optional[Decimal] = None
    amounts_reconciled_at: Optional[datetime] = None
    ivas: List[SaleIvaOut] = []
    created_at: datetime

    model_config = {"from_attributes": True}


class AfipAmountsPayload(BaseModel):
    """Fragmento de importes del comprobante para el cliente de AFIP"""
    netAmount: float
    ivaTotal: float
    ivaItems: List[Dict[str, Any]]
    tributes: List[Dict[str, Any]]
    tributesTotal: float
    total: float
