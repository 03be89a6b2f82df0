"""
Módulo POS (Point of Sale)

Este módulo maneja la caja del punto de venta con:

ENTIDADES PRINCIPALES:
- CashRegister: Cajas registradoras con apertura/cierre y arqueo
- CashMovement: Movimientos de caja (ventas, ingresos/egresos manuales,
  cobros de cuenta corriente, gastos, ajustes)
- PaymentMethod / MovementType: Catálogos de la empresa

FUNCIONALIDADES:
- Apertura/cierre de cajas con arqueo automático
- Registro de movimientos con método de pago
- Efectivo esperado recalculado desde el libro de caja
- Totales por método de pago

REGLAS DE NEGOCIO:
- Solo una caja abierta por PDV simultáneamente
- Movimientos solo en cajas abiertas
- Solo cuentan en el efectivo los movimientos en efectivo (o sin método de
  pago) que afectan saldo y no son automáticos del sistema
- Una diferencia en el arqueo es un resultado (sobrante/faltante), no un error

SEGURIDAD:
- owner/admin: Todas las operaciones
- seller/cashier: Operaciones de caja
- accountant: Consultas y arqueos
"""

from .models import (
    CashRegister, CashMovement, PaymentMethod, MovementType,
    CashRegisterStatus, OperationType
)

from .services import (
    CashRegisterService, CashMovementService,
    PaymentMethodService, MovementTypeService
)

from .reconciliation import reconcile_cash, is_cash_payment_method

__all__ = [
    # Models
    "CashRegister", "CashMovement", "PaymentMethod", "MovementType",
    "CashRegisterStatus", "OperationType",

    # Services
    "CashRegisterService", "CashMovementService",
    "PaymentMethodService", "MovementTypeService",

    # Arqueo
    "reconcile_cash", "is_cash_payment_method",
]
