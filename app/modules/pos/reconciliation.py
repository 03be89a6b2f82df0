"""
Arqueo de caja

Calcula el efectivo esperado de una caja a partir del saldo inicial y de los
movimientos que afectan el efectivo físico, y lo compara con el efectivo
contado al cierre. Una diferencia distinta de cero es un resultado de negocio
(sobrante o faltante), nunca un error.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.core.config import settings
from app.modules.taxes.calculator import round_money, ZERO
from app.modules.pos.schemas import (
    LedgerMovement, CashReconciliation, MovementDirection, VarianceStatus
)

UNDEFINED_PAYMENT_METHOD = "Indefinido"


def is_cash_payment_method(name: Optional[str], keywords: Optional[Iterable[str]] = None) -> bool:
    """
    Determinar si un método de pago es efectivo

    Un movimiento sin método de pago se considera efectivo.
    """
    if not name:
        return True
    keywords = settings.CASH_PAYMENT_KEYWORDS if keywords is None else keywords
    lowered = name.strip().lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _signed(movement: LedgerMovement) -> Decimal:
    amount = abs(movement.amount)
    return amount if movement.direction == MovementDirection.IN else -amount


def compute_expected_balance(opening_balance: Decimal, movements: Iterable[LedgerMovement]) -> Decimal:
    """Saldo inicial + entradas - salidas, solo movimientos en efectivo"""
    balance = Decimal(str(opening_balance))
    for movement in movements:
        if movement.is_cash:
            balance += _signed(movement)
    return round_money(balance)


def classify_variance(variance: Decimal, tolerance: Optional[Decimal] = None) -> VarianceStatus:
    tolerance = settings.CASH_BALANCE_TOLERANCE if tolerance is None else tolerance
    if abs(variance) < tolerance:
        return VarianceStatus.BALANCED
    if variance > 0:
        return VarianceStatus.SURPLUS
    return VarianceStatus.SHORTAGE


def summarize_payment_methods(movements: Iterable[LedgerMovement]) -> Dict[str, Decimal]:
    """Totales netos por método de pago (todos los movimientos, no solo efectivo)"""
    totals: Dict[str, Decimal] = {}
    for movement in movements:
        name = movement.payment_method or UNDEFINED_PAYMENT_METHOD
        totals[name] = totals.get(name, ZERO) + _signed(movement)
    return {name: round_money(total) for name, total in totals.items()}


def reconcile_cash(
    opening_balance: Decimal,
    movements: List[LedgerMovement],
    actual_balance: Optional[Decimal] = None,
    tolerance: Optional[Decimal] = None
) -> CashReconciliation:
    """
    Arqueo de una caja

    Args:
        opening_balance: Saldo inicial de apertura
        movements: Movimientos de la caja ya filtrados (los que afectan saldo)
        actual_balance: Efectivo contado; sin él no se calcula diferencia

    Returns:
        Efectivo esperado, entradas/salidas en efectivo, totales por método
        de pago y, si hay conteo, diferencia y su clasificación
    """
    cash_movements = [m for m in movements if m.is_cash]
    cash_in = sum((abs(m.amount) for m in cash_movements if m.direction == MovementDirection.IN), ZERO)
    cash_out = sum((abs(m.amount) for m in cash_movements if m.direction == MovementDirection.OUT), ZERO)

    expected_balance = compute_expected_balance(opening_balance, cash_movements)

    variance = None
    variance_status = None
    if actual_balance is not None:
        variance = round_money(Decimal(str(actual_balance)) - expected_balance)
        variance_status = classify_variance(variance, tolerance)

    return CashReconciliation(
        opening_balance=round_money(opening_balance),
        cash_in=round_money(cash_in),
        cash_out=round_money(cash_out),
        expected_balance=expected_balance,
        actual_balance=round_money(actual_balance) if actual_balance is not None else None,
        variance=variance,
        status=variance_status,
        payment_method_totals=summarize_payment_methods(movements),
        movements_count=len(movements),
        cash_movements_count=len(cash_movements)
    )
