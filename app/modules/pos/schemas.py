"""
Esquemas Pydantic para el módulo POS (Point of Sale)

Define la validación de datos de entrada y salida para:
- PaymentMethod / MovementType: Catálogos de caja
- CashRegister: Cajas registradoras con apertura/cierre
- CashMovement: Movimientos de caja
- CashReconciliation: Arqueo (efectivo esperado vs contado)

Todas las validaciones respetan la arquitectura multi-tenant.
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List, Dict
from uuid import UUID
from datetime import datetime
from enum import Enum


# ===== ENUMS =====

class CashRegisterStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class OperationType(str, Enum):
    IN = "in"
    OUT = "out"


class MovementSource(str, Enum):
    SALE = "sale"
    MANUAL = "manual"
    CURRENT_ACCOUNT = "current_account"
    EXPENSE = "expense"
    ADJUSTMENT = "adjustment"


# Alias usado por el arqueo: el sentido de un movimiento del libro de caja
MovementDirection = OperationType


class VarianceStatus(str, Enum):
    """Resultado del arqueo"""
    BALANCED = "balanced"   # |diferencia| < 0.01
    SURPLUS = "surplus"     # Sobrante
    SHORTAGE = "shortage"   # Faltante


def _clean_name(v: str) -> str:
    cleaned = v.strip()
    if not cleaned:
        raise ValueError('El nombre no puede estar vacío')
    return cleaned


# ===== CATALOG SCHEMAS =====

class PaymentMethodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nombre del método de pago")
    is_active: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class PaymentMethodOut(BaseModel):
    id: UUID
    name: str
    is_active: bool
    is_cash: bool = Field(False, description="Se considera efectivo en el arqueo")

    model_config = {"from_attributes": True}


class MovementTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nombre del tipo de movimiento")
    operation_type: OperationType = Field(..., description="Entrada o salida")
    is_cash_movement: bool = Field(True, description="Afecta el efectivo de la caja")
    is_system: bool = Field(False, description="Movimiento automático del sistema (no cuenta en el arqueo)")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _clean_name(v)


class MovementTypeOut(BaseModel):
    id: UUID
    name: str
    operation_type: OperationType
    is_cash_movement: bool
    is_system: bool
    is_active: bool

    model_config = {"from_attributes": True}


# ===== CASH REGISTER SCHEMAS =====

class CashRegisterOpen(BaseModel):
    """Esquema para abrir caja registradora"""
    opening_balance: Decimal = Field(..., ge=0, description="Saldo inicial de apertura")
    opening_notes: Optional[str] = Field(None, max_length=500, description="Notas de apertura")


class CashRegisterClose(BaseModel):
    """Esquema para cerrar caja registradora"""
    closing_balance: Decimal = Field(..., ge=0, description="Efectivo contado al cierre")
    closing_notes: Optional[str] = Field(None, max_length=500, description="Notas de cierre")


class CashRegisterOut(BaseModel):
    """Esquema de salida para caja registradora"""
    id: UUID = Field(description="ID único de la caja")
    pdv_id: UUID = Field(description="ID del PDV")
    status: CashRegisterStatus = Field(description="Estado de la caja")
    opening_balance: Decimal = Field(description="Saldo de apertura")
    closing_balance: Optional[Decimal] = Field(None, description="Efectivo contado al cierre")
    expected_cash_balance: Optional[Decimal] = Field(None, description="Efectivo esperado")
    cash_difference: Optional[Decimal] = Field(None, description="Contado - esperado")
    payment_method_totals: Optional[Dict[str, Decimal]] = Field(None, description="Totales por método de pago")
    opened_by: UUID = Field(description="Usuario que abrió la caja")
    closed_by: Optional[UUID] = Field(None, description="Usuario que cerró la caja")
    opened_at: datetime = Field(description="Fecha y hora de apertura")
    closed_at: Optional[datetime] = Field(None, description="Fecha y hora de cierre")
    opening_notes: Optional[str] = Field(None, description="Notas de apertura")
    closing_notes: Optional[str] = Field(None, description="Notas de cierre")

    model_config = {"from_attributes": True}


class CashRegisterList(BaseModel):
    cash_registers: List[CashRegisterOut] = Field(description="Lista de cajas")
    total: int = Field(description="Total de cajas")
    limit: int = Field(description="Límite aplicado")
    offset: int = Field(description="Offset aplicado")


# ===== CASH MOVEMENT SCHEMAS =====

class CashMovementCreate(BaseModel):
    """Esquema para crear movimiento de caja"""
    cash_register_id: UUID = Field(..., description="ID de la caja registradora")
    movement_type_id: UUID = Field(..., description="ID del tipo de movimiento")
    payment_method_id: Optional[UUID] = Field(None, description="ID del método de pago (vacío = efectivo)")
    source_kind: MovementSource = Field(MovementSource.MANUAL, description="Origen del movimiento")
    amount: Decimal = Field(..., gt=0, description="Monto del movimiento (siempre positivo)")
    affects_balance: bool = Field(True, description="False para movimientos informativos")
    reference: Optional[str] = Field(None, max_length=100, description="Referencia opcional")
    description: Optional[str] = Field(None, max_length=500, description="Descripción del movimiento")


class CashMovementOut(BaseModel):
    id: UUID = Field(description="ID único del movimiento")
    cash_register_id: UUID = Field(description="ID de la caja registradora")
    movement_type_id: UUID = Field(description="ID del tipo de movimiento")
    payment_method_id: Optional[UUID] = Field(None, description="ID del método de pago")
    source_kind: MovementSource = Field(description="Origen del movimiento")
    amount: Decimal = Field(description="Monto del movimiento")
    signed_amount: Decimal = Field(description="Monto con signo según tipo")
    affects_balance: bool
    reference: Optional[str] = Field(None, description="Referencia")
    description: Optional[str] = Field(None, description="Descripción")
    created_by: UUID = Field(description="Usuario que creó el movimiento")
    created_at: datetime = Field(description="Fecha de creación")

    model_config = {"from_attributes": True}


class CashMovementList(BaseModel):
    movements: List[CashMovementOut] = Field(description="Lista de movimientos")
    total: int = Field(description="Total de movimientos")
    limit: int = Field(description="Límite aplicado")
    offset: int = Field(description="Offset aplicado")


# ===== RECONCILIATION SCHEMAS =====

class LedgerMovement(BaseModel):
    """Movimiento del libro de caja que afecta el saldo"""
    direction: MovementDirection
    amount: Decimal = Field(..., ge=0)
    source_kind: MovementSource = MovementSource.MANUAL
    payment_method: Optional[str] = None
    is_cash: bool = True


class CashReconciliation(BaseModel):
    """Resultado del arqueo de una caja"""
    opening_balance: Decimal
    cash_in: Decimal
    cash_out: Decimal
    expected_balance: Decimal
    actual_balance: Optional[Decimal] = None
    variance: Optional[Decimal] = None
    status: Optional[VarianceStatus] = None
    payment_method_totals: Dict[str, Decimal] = {}
    movements_count: int = 0
    cash_movements_count: int = 0


class CashRegisterReconciliation(CashReconciliation):
    """Arqueo de una caja guardada, comparado con el esperado almacenado"""
    cash_register_id: UUID
    register_status: CashRegisterStatus
    stored_expected_balance: Optional[Decimal] = None
    stored_matches: bool = Field(description="El esperado recalculado coincide con el guardado")
