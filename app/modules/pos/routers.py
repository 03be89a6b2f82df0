"""
Routers FastAPI para el módulo POS (Point of Sale)

Define los endpoints REST para:
- CashRegisters: Apertura/cierre de cajas y arqueo
- CashMovements: Movimientos de caja
- PaymentMethods / MovementTypes: Catálogos de caja

Todos los endpoints implementan:
- Validación de permisos por rol
- Filtros multi-tenant automáticos
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import Optional, List
from uuid import UUID
from decimal import Decimal

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.pos.models import CashRegisterStatus as ModelCashRegisterStatus
from app.modules.pos.services import (
    CashRegisterService, CashMovementService,
    PaymentMethodService, MovementTypeService
)
from app.modules.pos.schemas import (
    CashRegisterOpen, CashRegisterClose, CashRegisterOut, CashRegisterList,
    CashMovementCreate, CashMovementOut, CashMovementList,
    PaymentMethodCreate, PaymentMethodOut,
    MovementTypeCreate, MovementTypeOut,
    CashRegisterReconciliation, CashRegisterStatus
)


# ===== CASH REGISTERS ROUTER =====

cash_registers_router = APIRouter(prefix="/cash-registers", tags=["POS"])


@cash_registers_router.post("/open", response_model=CashRegisterOut, status_code=status.HTTP_201_CREATED)
async def open_cash_register(
    register_data: CashRegisterOpen,
    pdv_id: UUID = Query(..., description="ID del punto de venta"),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier"])),
    db: Session = Depends(get_db)
):
    """
    Abrir caja registradora en un PDV.

    - **opening_balance**: Saldo inicial de apertura
    - **opening_notes**: Notas opcionales de apertura

    Solo puede haber una caja abierta por PDV (409 si ya existe).
    """
    service = CashRegisterService(db)
    return service.open_cash_register(
        register_data=register_data,
        pdv_id=pdv_id,
        tenant_id=auth_context.tenant_id,
        user_id=auth_context.user_id
    )


@cash_registers_router.get("/current", response_model=CashRegisterOut)
async def get_current_cash_register(
    pdv_id: UUID = Query(..., description="ID del punto de venta"),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier"])),
    db: Session = Depends(get_db)
):
    """
    Devuelve la caja abierta actual para el PDV indicado.

    - 404 si no hay caja abierta
    """
    service = CashRegisterService(db)
    register = service.get_current_cash_register(auth_context.tenant_id, pdv_id)
    if not register:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No hay caja abierta en este PDV")
    return register


@cash_registers_router.get("/", response_model=CashRegisterList)
async def get_cash_registers(
    pdv_id: Optional[UUID] = Query(None, description="Filtrar por PDV"),
    register_status: Optional[CashRegisterStatus] = Query(None, alias="status", description="Filtrar por estado"),
    limit: int = Query(100, ge=1, le=1000, description="Límite de resultados"),
    offset: int = Query(0, ge=0, description="Offset para paginación"),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    service = CashRegisterService(db)
    return service.get_cash_registers(
        tenant_id=auth_context.tenant_id,
        pdv_id=pdv_id,
        register_status=ModelCashRegisterStatus(register_status.value) if register_status else None,
        limit=limit,
        offset=offset
    )


@cash_registers_router.get("/{register_id}", response_model=CashRegisterOut)
async def get_cash_register(
    register_id: UUID,
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    service = CashRegisterService(db)
    return service.get_cash_register(register_id, auth_context.tenant_id)


@cash_registers_router.post("/{register_id}/close", response_model=CashRegisterOut)
async def close_cash_register(
    register_id: UUID,
    close_data: CashRegisterClose,
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier"])),
    db: Session = Depends(get_db)
):
    """
    Cerrar caja registradora con arqueo.

    - **closing_balance**: Efectivo contado físicamente
    - **closing_notes**: Notas opcionales de cierre

    Guarda el efectivo esperado, la diferencia (contado - esperado) y los
    totales por método de pago.
    """
    service = CashRegisterService(db)
    return service.close_cash_register(
        register_id=register_id,
        close_data=close_data,
        tenant_id=auth_context.tenant_id,
        user_id=auth_context.user_id
    )


@cash_registers_router.get("/{register_id}/reconciliation", response_model=CashRegisterReconciliation)
async def get_cash_register_reconciliation(
    register_id: UUID,
    actual_balance: Optional[Decimal] = Query(None, ge=0, description="Efectivo contado (por defecto el del cierre)"),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    """
    Arqueo recalculado desde los movimientos de la caja.

    Indica además si el efectivo esperado guardado coincide con el recalculado.
    """
    service = CashRegisterService(db)
    return service.get_reconciliation(register_id, auth_context.tenant_id, actual_balance)


# ===== CASH MOVEMENTS ROUTER =====

cash_movements_router = APIRouter(prefix="/cash-movements", tags=["POS"])


@cash_movements_router.post("/", response_model=CashMovementOut, status_code=status.HTTP_201_CREATED)
async def create_cash_movement(
    movement_data: CashMovementCreate,
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier"])),
    db: Session = Depends(get_db)
):
    """
    Registrar movimiento en una caja abierta.

    - **movement_type_id**: Tipo de movimiento (define entrada/salida)
    - **payment_method_id**: Método de pago (vacío = efectivo)
    - **amount**: Siempre positivo
    - **affects_balance**: False para movimientos informativos
    """
    service = CashMovementService(db)
    return service.create_movement(movement_data, auth_context.tenant_id, auth_context.user_id)


@cash_movements_router.get("/", response_model=CashMovementList)
async def get_cash_movements(
    cash_register_id: Optional[UUID] = Query(None, description="Filtrar por caja"),
    limit: int = Query(100, ge=1, le=1000, description="Límite de resultados"),
    offset: int = Query(0, ge=0, description="Offset para paginación"),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    service = CashMovementService(db)
    return service.get_movements(auth_context.tenant_id, cash_register_id, limit, offset)


# ===== CATALOG ROUTERS =====

payment_methods_router = APIRouter(prefix="/payment-methods", tags=["POS"])


@payment_methods_router.get("/", response_model=List[PaymentMethodOut])
async def get_payment_methods(
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    service = PaymentMethodService(db)
    return service.get_payment_methods(auth_context.tenant_id)


@payment_methods_router.post("/", response_model=PaymentMethodOut, status_code=status.HTTP_201_CREATED)
async def create_payment_method(
    data: PaymentMethodCreate,
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin"])),
    db: Session = Depends(get_db)
):
    service = PaymentMethodService(db)
    return service.create_payment_method(data, auth_context.tenant_id)


movement_types_router = APIRouter(prefix="/movement-types", tags=["POS"])


@movement_types_router.get("/", response_model=List[MovementTypeOut])
async def get_movement_types(
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"])),
    db: Session = Depends(get_db)
):
    service = MovementTypeService(db)
    return service.get_movement_types(auth_context.tenant_id)


@movement_types_router.post("/", response_model=MovementTypeOut, status_code=status.HTTP_201_CREATED)
async def create_movement_type(
    data: MovementTypeCreate,
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin"])),
    db: Session = Depends(get_db)
):
    service = MovementTypeService(db)
    return service.create_movement_type(data, auth_context.tenant_id)
