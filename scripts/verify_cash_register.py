"""
Verificación de caja: recalcula el arqueo desde el libro de caja y lo compara
con el efectivo esperado guardado.

Sin argumentos toma la última caja abierta; si no hay ninguna muestra las
últimas cinco cajas. Run inside the API container:
    docker compose exec api python scripts/verify_cash_register.py [register_id]
"""

# Add project root (/code) to sys.path so `app.*` imports work even if CWD changes
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
from uuid import UUID

from sqlalchemy import desc

from app.database.database import SessionLocal
from app.modules.pos.models import CashRegister, CashRegisterStatus, PaymentMethod
from app.modules.pos.services import CashRegisterService, to_ledger_movement


def find_register(db, register_id):
    query = db.query(CashRegister)
    if register_id:
        return query.filter(CashRegister.id == register_id).first()
    return query.filter(
        CashRegister.status == CashRegisterStatus.OPEN
    ).order_by(desc(CashRegister.opened_at)).first()


def print_last_registers(db, limit: int = 5):
    registers = db.query(CashRegister).order_by(desc(CashRegister.opened_at)).limit(limit).all()
    if not registers:
        print("No hay cajas registradas.")
        return
    print(f"Últimas {len(registers)} cajas:")
    for register in registers:
        print(
            f"  {register.id}  PDV {register.pdv_id}  {register.status.value:<6}  "
            f"apertura {register.opened_at:%Y-%m-%d %H:%M}  esperado ${register.expected_cash_balance}"
        )


def print_report(db, register: CashRegister):
    service = CashRegisterService(db)

    methods = db.query(PaymentMethod).filter(PaymentMethod.tenant_id == register.tenant_id).all()
    cash_methods = [m.name for m in methods if m.is_cash]
    print(f"Caja {register.id} ({register.status.value}) - PDV {register.pdv_id}")
    print(f"Métodos de pago en efectivo: {', '.join(cash_methods) or '(ninguno)'}")

    result = service.get_reconciliation(register.id, register.tenant_id)

    print("\nTotales por método de pago:")
    for name, total in sorted(result.payment_method_totals.items()):
        print(f"  {name:<25} ${total:>12}")

    print("\nMovimientos:")
    for movement in register.movements:
        entry = to_ledger_movement(movement)
        if entry is None:
            label = "excluido"
        else:
            label = "efectivo" if entry.is_cash else "otro"
        method = movement.payment_method.name if movement.payment_method else "-"
        print(
            f"  [{label:<8}] {movement.movement_type.name:<25} {method:<20} ${movement.signed_amount:>12}"
        )

    print(f"\nSaldo inicial:          ${result.opening_balance}")
    print(f"Entradas en efectivo:   ${result.cash_in}")
    print(f"Salidas en efectivo:    ${result.cash_out}")
    print(f"Efectivo esperado:      ${result.expected_balance}")
    print(f"Esperado guardado:      ${result.stored_expected_balance}")
    if result.actual_balance is not None:
        print(f"Efectivo contado:       ${result.actual_balance}")
        print(f"Diferencia:             ${result.variance} ({result.status.value})")

    if result.stored_matches:
        print("\nOK: el efectivo esperado guardado coincide con el recalculado.")
    else:
        print("\nATENCIÓN: el efectivo esperado guardado no coincide con el recalculado.")
    return result.stored_matches


def main():
    parser = argparse.ArgumentParser(description="Verificar el arqueo de una caja registradora")
    parser.add_argument("register_id", nargs="?", type=UUID, help="ID de la caja (por defecto la última abierta)")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        register = find_register(db, args.register_id)
        if register is None:
            if args.register_id:
                print(f"Caja {args.register_id} no encontrada.")
                return 1
            print("No hay cajas abiertas.")
            print_last_registers(db)
            return 0

        return 0 if print_report(db, register) else 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
