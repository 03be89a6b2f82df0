"""
Modelos SQLAlchemy para el módulo POS (Point of Sale)

Este módulo maneja la caja del punto de venta:
- PaymentMethod: Métodos de pago (efectivo, tarjeta, transferencia, ...)
- MovementType: Tipos de movimiento con su sentido (entrada/salida)
- CashRegister: Cajas registradoras con apertura/cierre y arqueo
- CashMovement: Movimientos de caja (ventas, ingresos manuales, cobros de
  cuenta corriente, gastos, ajustes)

Arquitectura multi-tenant: Todas las tablas incluyen tenant_id
"""

from app.database.database import Base
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Enum, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from app.common.mixins import TenantMixin, TimestampMixin
import enum


# ===== ENUMS =====

class CashRegisterStatus(str, enum.Enum):
    """Estados de caja registradora"""
    OPEN = "open"       # Caja abierta
    CLOSED = "closed"   # Caja cerrada


class OperationType(str, enum.Enum):
    """Sentido del movimiento sobre el saldo de la caja"""
    IN = "in"     # Entrada
    OUT = "out"   # Salida


class MovementSource(str, enum.Enum):
    """Origen del movimiento de caja"""
    SALE = "sale"                         # Cobro de venta
    MANUAL = "manual"                     # Ingreso/egreso manual
    CURRENT_ACCOUNT = "current_account"   # Cobro de cuenta corriente
    EXPENSE = "expense"                   # Gasto pagado desde caja
    ADJUSTMENT = "adjustment"             # Ajuste


# ===== MODELOS =====

class PaymentMethod(Base, TenantMixin, TimestampMixin):
    """Métodos de pago de la empresa"""
    __tablename__ = "payment_methods"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_payment_method_tenant_name"),
    )

    @property
    def is_cash(self) -> bool:
        """Se considera efectivo en el arqueo (activo y por nombre: efectivo, cash, contado)"""
        from app.modules.pos.reconciliation import is_cash_payment_method
        return bool(self.is_active) and is_cash_payment_method(self.name)


class MovementType(Base, TenantMixin, TimestampMixin):
    """
    Tipos de movimiento de caja

    Los tipos de sistema (apertura/cierre automáticos, ajuste del sistema) se
    registran para auditoría pero no cuentan en el arqueo.
    """
    __tablename__ = "movement_types"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(100), nullable=False, index=True)
    operation_type = Column(Enum(OperationType), nullable=False)
    is_cash_movement = Column(Boolean, nullable=False, default=True)
    is_system = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_movement_type_tenant_name"),
    )


class CashRegister(Base, TenantMixin, TimestampMixin):
    """
    Cajas registradoras del punto de venta

    Maneja la apertura/cierre de cajas con arqueo automático.
    Solo puede existir una caja abierta por PDV simultáneamente.
    """
    __tablename__ = "cash_registers"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    pdv_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    status = Column(Enum(CashRegisterStatus), nullable=False, default=CashRegisterStatus.OPEN, index=True)

    # Balances
    opening_balance = Column(Numeric(15, 2), nullable=False, default=0)
    closing_balance = Column(Numeric(15, 2), nullable=True)  # Efectivo contado al cerrar
    expected_cash_balance = Column(Numeric(15, 2), nullable=True)
    cash_difference = Column(Numeric(15, 2), nullable=True)
    payment_method_totals = Column(JSON, nullable=True)

    # Control de apertura/cierre
    opened_by = Column(UUID(as_uuid=True), nullable=False)
    closed_by = Column(UUID(as_uuid=True), nullable=True)
    opened_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)

    opening_notes = Column(Text, nullable=True)
    closing_notes = Column(Text, nullable=True)

    movements = relationship(
        "CashMovement",
        back_populates="cash_register",
        cascade="all, delete-orphan",
        order_by="CashMovement.created_at"
    )


class CashMovement(Base, TenantMixin, TimestampMixin):
    """
    Movimientos de caja registradora

    El monto se guarda siempre en valor absoluto; el signo lo da el
    operation_type del tipo de movimiento.
    """
    __tablename__ = "cash_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    cash_register_id = Column(UUID(as_uuid=True), ForeignKey("cash_registers.id"), nullable=False, index=True)
    movement_type_id = Column(UUID(as_uuid=True), ForeignKey("movement_types.id"), nullable=False, index=True)
    payment_method_id = Column(UUID(as_uuid=True), ForeignKey("payment_methods.id"), nullable=True, index=True)
    source_kind = Column(Enum(MovementSource), nullable=False, default=MovementSource.MANUAL)
    amount = Column(Numeric(15, 2), nullable=False)
    affects_balance = Column(Boolean, nullable=False, default=True)  # False = informativo
    reference = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    created_by = Column(UUID(as_uuid=True), nullable=False)

    # Relationships
    cash_register = relationship("CashRegister", back_populates="movements")
    movement_type = relationship("MovementType")
    payment_method = relationship("PaymentMethod")

    @property
    def signed_amount(self):
        """Monto con signo según el tipo de movimiento"""
        if self.movement_type and self.movement_type.operation_type == OperationType.OUT:
            return -abs(self.amount)
        return abs(self.amount)
