"""
Servicios de negocio para el módulo POS (Point of Sale)

Implementa la lógica de negocio para:
- PaymentMethodService / MovementTypeService: Catálogos de caja
- CashRegisterService: Apertura/cierre de cajas y arqueo
- CashMovementService: Registro de movimientos de caja

El arqueo en sí (cálculo del efectivo esperado y la diferencia) vive en
app.modules.pos.reconciliation; aquí solo se decide qué movimientos del libro
de caja participan y se guardan los campos calculados en la caja.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from sqlalchemy import desc
from decimal import Decimal
from typing import List, Optional, Dict, Any
from uuid import UUID
from datetime import datetime
import logging

from app.core.config import settings
from app.modules.pos.models import (
    CashRegister, CashMovement, PaymentMethod, MovementType,
    CashRegisterStatus, OperationType, MovementSource as ModelMovementSource
)
from app.modules.pos.schemas import (
    CashRegisterOpen, CashRegisterClose, CashMovementCreate,
    PaymentMethodCreate, MovementTypeCreate,
    LedgerMovement, MovementDirection, MovementSource,
    CashReconciliation, CashRegisterReconciliation, VarianceStatus
)
from app.modules.pos.reconciliation import reconcile_cash

logger = logging.getLogger(__name__)


DEFAULT_PAYMENT_METHODS = [
    "Efectivo",
    "Tarjeta de débito",
    "Tarjeta de crédito",
    "Transferencia",
    "Cuenta corriente",
]

DEFAULT_MOVEMENT_TYPES = [
    {"name": "Venta", "operation_type": OperationType.IN},
    {"name": "Ingreso manual", "operation_type": OperationType.IN},
    {"name": "Cobro cuenta corriente", "operation_type": OperationType.IN},
    {"name": "Egreso manual", "operation_type": OperationType.OUT},
    {"name": "Gasto", "operation_type": OperationType.OUT},
    {"name": "Apertura automática", "operation_type": OperationType.IN, "is_system": True},
    {"name": "Cierre automático", "operation_type": OperationType.OUT, "is_system": True},
    {"name": "Ajuste del sistema", "operation_type": OperationType.IN, "is_system": True},
]


def to_ledger_movement(movement: CashMovement) -> Optional[LedgerMovement]:
    """
    Convertir un movimiento guardado al libro del arqueo

    Retorna None para movimientos que no participan: informativos
    (affects_balance=False) y automáticos del sistema. Cuenta como efectivo si
    el tipo es de efectivo y el método de pago es efectivo activo o no está cargado.
    """
    if not movement.affects_balance:
        return None

    movement_type = movement.movement_type
    if movement_type is None or movement_type.is_system:
        return None

    payment_method = movement.payment_method
    if payment_method is None:
        payment_method_name = None
        method_is_cash = True
    else:
        payment_method_name = payment_method.name
        # Un método desactivado deja de contar como efectivo
        method_is_cash = payment_method.is_cash

    return LedgerMovement(
        direction=MovementDirection(movement_type.operation_type.value),
        amount=movement.amount,
        source_kind=MovementSource(movement.source_kind.value),
        payment_method=payment_method_name,
        is_cash=bool(movement_type.is_cash_movement) and method_is_cash
    )


class PaymentMethodService:
    """Servicio para métodos de pago"""

    def __init__(self, db: Session):
        self.db = db

    def get_payment_methods(self, tenant_id: UUID, only_active: bool = True) -> List[PaymentMethod]:
        query = self.db.query(PaymentMethod).filter(PaymentMethod.tenant_id == tenant_id)
        if only_active:
            query = query.filter(PaymentMethod.is_active == True)
        return query.order_by(PaymentMethod.name).all()

    def create_payment_method(self, data: PaymentMethodCreate, tenant_id: UUID) -> PaymentMethod:
        try:
            existing = self.db.query(PaymentMethod).filter(
                PaymentMethod.tenant_id == tenant_id,
                PaymentMethod.name == data.name
            ).first()

            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un método de pago con el nombre '{data.name}'"
                )

            payment_method = PaymentMethod(tenant_id=tenant_id, **data.model_dump())
            self.db.add(payment_method)
            self.db.commit()
            self.db.refresh(payment_method)
            return payment_method

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un método de pago con el nombre '{data.name}'"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def seed_defaults(self, tenant_id: UUID) -> None:
        """Crear los métodos de pago por defecto que falten"""
        existing = {pm.name for pm in self.get_payment_methods(tenant_id, only_active=False)}
        for name in DEFAULT_PAYMENT_METHODS:
            if name not in existing:
                self.db.add(PaymentMethod(tenant_id=tenant_id, name=name))
        self.db.commit()


class MovementTypeService:
    """Servicio para tipos de movimiento de caja"""

    def __init__(self, db: Session):
        self.db = db

    def get_movement_types(self, tenant_id: UUID, only_active: bool = True) -> List[MovementType]:
        query = self.db.query(MovementType).filter(MovementType.tenant_id == tenant_id)
        if only_active:
            query = query.filter(MovementType.is_active == True)
        return query.order_by(MovementType.name).all()

    def create_movement_type(self, data: MovementTypeCreate, tenant_id: UUID) -> MovementType:
        try:
            existing = self.db.query(MovementType).filter(
                MovementType.tenant_id == tenant_id,
                MovementType.name == data.name
            ).first()

            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un tipo de movimiento con el nombre '{data.name}'"
                )

            movement_type = MovementType(
                tenant_id=tenant_id,
                name=data.name,
                operation_type=OperationType(data.operation_type.value),
                is_cash_movement=data.is_cash_movement,
                is_system=data.is_system
            )
            self.db.add(movement_type)
            self.db.commit()
            self.db.refresh(movement_type)
            return movement_type

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe un tipo de movimiento con el nombre '{data.name}'"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def seed_defaults(self, tenant_id: UUID) -> None:
        """Crear los tipos de movimiento por defecto que falten"""
        existing = {mt.name for mt in self.get_movement_types(tenant_id, only_active=False)}
        for type_data in DEFAULT_MOVEMENT_TYPES:
            if type_data["name"] not in existing:
                self.db.add(MovementType(tenant_id=tenant_id, **type_data))
        self.db.commit()


class CashRegisterService:
    """Servicio para gestión de cajas registradoras"""

    def __init__(self, db: Session):
        self.db = db

    def open_cash_register(self, register_data: CashRegisterOpen, pdv_id: UUID,
                           tenant_id: UUID, user_id: UUID) -> CashRegister:
        """Abrir caja registradora"""
        try:
            existing_open = self.get_current_cash_register(tenant_id, pdv_id)

            if existing_open:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="Ya existe una caja abierta en este PDV"
                )

            new_register = CashRegister(
                tenant_id=tenant_id,
                pdv_id=pdv_id,
                status=CashRegisterStatus.OPEN,
                opening_balance=register_data.opening_balance,
                expected_cash_balance=register_data.opening_balance,
                opened_by=user_id,
                opened_at=datetime.utcnow(),
                opening_notes=register_data.opening_notes
            )

            self.db.add(new_register)
            self.db.commit()
            self.db.refresh(new_register)

            logger.info(f"Caja {new_register.id} abierta en PDV {pdv_id} con ${register_data.opening_balance}")
            return new_register

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Error de integridad al crear la caja"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_current_cash_register(self, tenant_id: UUID, pdv_id: UUID) -> Optional[CashRegister]:
        """
        Obtener la caja abierta actual para un PDV específico.

        Retorna None si no existe caja abierta para ese PDV.
        """
        return self.db.query(CashRegister).filter(
            CashRegister.tenant_id == tenant_id,
            CashRegister.pdv_id == pdv_id,
            CashRegister.status == CashRegisterStatus.OPEN
        ).first()

    def get_cash_register(self, register_id: UUID, tenant_id: UUID) -> CashRegister:
        register = self.db.query(CashRegister).options(
            selectinload(CashRegister.movements).selectinload(CashMovement.movement_type),
            selectinload(CashRegister.movements).selectinload(CashMovement.payment_method)
        ).filter(
            CashRegister.id == register_id,
            CashRegister.tenant_id == tenant_id
        ).first()

        if not register:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Caja registradora no encontrada"
            )
        return register

    def get_cash_registers(self, tenant_id: UUID, pdv_id: Optional[UUID] = None,
                           register_status: Optional[CashRegisterStatus] = None,
                           limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Obtener lista de cajas registradoras"""
        query = self.db.query(CashRegister).filter(CashRegister.tenant_id == tenant_id)

        if pdv_id:
            query = query.filter(CashRegister.pdv_id == pdv_id)

        if register_status:
            query = query.filter(CashRegister.status == register_status)

        query = query.order_by(desc(CashRegister.opened_at))

        total = query.count()
        registers = query.offset(offset).limit(limit).all()

        return {
            "cash_registers": registers,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    def ledger_movements(self, register: CashRegister) -> List[LedgerMovement]:
        """Movimientos de la caja que participan en el arqueo"""
        ledger = []
        for movement in register.movements:
            entry = to_ledger_movement(movement)
            if entry is not None:
                ledger.append(entry)
        return ledger

    def reconcile(self, register: CashRegister, actual_balance: Optional[Decimal] = None) -> CashReconciliation:
        return reconcile_cash(
            opening_balance=register.opening_balance or Decimal("0"),
            movements=self.ledger_movements(register),
            actual_balance=actual_balance
        )

    def update_calculated_fields(self, register: CashRegister) -> CashReconciliation:
        """
        Recalcular desde cero el efectivo esperado, la diferencia y los
        totales por método de pago de la caja (sin commit)
        """
        result = self.reconcile(register, register.closing_balance)

        register.expected_cash_balance = result.expected_balance
        register.cash_difference = result.variance
        register.payment_method_totals = {
            name: str(total) for name, total in result.payment_method_totals.items()
        }
        return result

    def close_cash_register(self, register_id: UUID, close_data: CashRegisterClose,
                            tenant_id: UUID, user_id: UUID) -> CashRegister:
        """Cerrar caja registradora con arqueo"""
        try:
            register = self.get_cash_register(register_id, tenant_id)

            if register.status == CashRegisterStatus.CLOSED:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="La caja ya está cerrada"
                )

            register.closing_balance = close_data.closing_balance
            result = self.update_calculated_fields(register)

            register.status = CashRegisterStatus.CLOSED
            register.closed_by = user_id
            register.closed_at = datetime.utcnow()
            register.closing_notes = close_data.closing_notes

            self.db.commit()
            self.db.refresh(register)

            if result.status == VarianceStatus.BALANCED:
                logger.info(f"Caja {register.id} cerrada sin diferencias (${result.expected_balance})")
            else:
                label = "Sobrante" if result.status == VarianceStatus.SURPLUS else "Faltante"
                logger.warning(
                    f"Caja {register.id} cerrada con diferencia: {label} de ${abs(result.variance)} "
                    f"(esperado ${result.expected_balance}, contado ${result.actual_balance})"
                )

            return register

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_reconciliation(self, register_id: UUID, tenant_id: UUID,
                           actual_balance: Optional[Decimal] = None) -> CashRegisterReconciliation:
        """
        Arqueo recalculado desde el libro de caja

        Sin actual_balance usa el efectivo contado al cierre (si la caja está
        cerrada). Compara el esperado recalculado con el guardado en la caja,
        que puede estar desactualizado.
        """
        register = self.get_cash_register(register_id, tenant_id)
        counted = actual_balance if actual_balance is not None else register.closing_balance
        result = self.reconcile(register, counted)

        stored = register.expected_cash_balance
        stored_matches = (
            stored is not None
            and abs(result.expected_balance - Decimal(str(stored))) < settings.CASH_BALANCE_TOLERANCE
        )
        if not stored_matches:
            logger.warning(
                f"Caja {register.id}: esperado guardado ${stored} difiere del recalculado ${result.expected_balance}"
            )

        return CashRegisterReconciliation(
            **result.model_dump(),
            cash_register_id=register.id,
            register_status=register.status.value,
            stored_expected_balance=stored,
            stored_matches=stored_matches
        )


class CashMovementService:
    """Servicio para gestión de movimientos de caja"""

    def __init__(self, db: Session):
        self.db = db

    def create_movement(self, movement_data: CashMovementCreate,
                        tenant_id: UUID, user_id: UUID) -> CashMovement:
        """Crear movimiento de caja y actualizar el arqueo de la caja"""
        try:
            register = self.db.query(CashRegister).filter(
                CashRegister.id == movement_data.cash_register_id,
                CashRegister.tenant_id == tenant_id
            ).first()

            if not register:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Caja registradora no encontrada"
                )

            if register.status != CashRegisterStatus.OPEN:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail="La caja debe estar abierta para registrar movimientos"
                )

            movement_type = self.db.query(MovementType).filter(
                MovementType.id == movement_data.movement_type_id,
                MovementType.tenant_id == tenant_id,
                MovementType.is_active == True
            ).first()

            if not movement_type:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Tipo de movimiento no encontrado o inactivo"
                )

            if movement_data.payment_method_id:
                payment_method = self.db.query(PaymentMethod).filter(
                    PaymentMethod.id == movement_data.payment_method_id,
                    PaymentMethod.tenant_id == tenant_id,
                    PaymentMethod.is_active == True
                ).first()

                if not payment_method:
                    raise HTTPException(
                        status_code=status.HTTP_404_NOT_FOUND,
                        detail="Método de pago no encontrado o inactivo"
                    )

            new_movement = CashMovement(
                tenant_id=tenant_id,
                cash_register_id=register.id,
                movement_type_id=movement_type.id,
                payment_method_id=movement_data.payment_method_id,
                source_kind=ModelMovementSource(movement_data.source_kind.value),
                amount=abs(movement_data.amount),  # Siempre valor absoluto
                affects_balance=movement_data.affects_balance,
                reference=movement_data.reference,
                description=movement_data.description,
                created_by=user_id
            )

            self.db.add(new_movement)
            self.db.flush()

            self.db.expire(register, ["movements"])
            CashRegisterService(self.db).update_calculated_fields(register)

            self.db.commit()
            self.db.refresh(new_movement)

            return new_movement

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Error de integridad al crear el movimiento"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_movements(self, tenant_id: UUID, cash_register_id: Optional[UUID] = None,
                      limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Obtener movimientos de caja"""
        query = self.db.query(CashMovement).options(
            selectinload(CashMovement.movement_type)
        ).filter(CashMovement.tenant_id == tenant_id)

        if cash_register_id:
            query = query.filter(CashMovement.cash_register_id == cash_register_id)

        query = query.order_by(desc(CashMovement.created_at))

        total = query.count()
        movements = query.offset(offset).limit(limit).all()

        return {
            "movements": movements,
            "total": total,
            "limit": limit,
            "offset": offset
        }
