"""
Tests para el módulo POS (caja y arqueo)

Cubren:
- Arqueo puro: efectivo esperado, diferencia y su clasificación
- Detección de métodos de pago en efectivo
- Servicios de caja sobre SQLite: apertura, movimientos, cierre y arqueo
- Endpoints /api/v1 de cajas, movimientos y catálogos
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException

from app.modules.pos.models import MovementType, PaymentMethod, CashRegisterStatus
from app.modules.pos.reconciliation import (
    reconcile_cash, is_cash_payment_method, classify_variance, UNDEFINED_PAYMENT_METHOD
)
from app.modules.pos.schemas import (
    LedgerMovement, MovementDirection, VarianceStatus,
    CashRegisterOpen, CashRegisterClose, CashMovementCreate, PaymentMethodCreate
)
from app.modules.pos.services import (
    CashRegisterService, CashMovementService, PaymentMethodService, MovementTypeService
)


def cash_in(amount, payment_method=None, is_cash=True):
    return LedgerMovement(direction=MovementDirection.IN, amount=Decimal(amount),
                          payment_method=payment_method, is_cash=is_cash)


def cash_out(amount, payment_method=None, is_cash=True):
    return LedgerMovement(direction=MovementDirection.OUT, amount=Decimal(amount),
                          payment_method=payment_method, is_cash=is_cash)


@pytest.fixture
def ledger():
    return [cash_in("500"), cash_in("300"), cash_out("200")]


# ===== TESTS DE ARQUEO =====

class TestReconcileCash:

    def test_balanced(self, ledger):
        result = reconcile_cash(Decimal("1000"), ledger, Decimal("1600"))

        assert result.expected_balance == Decimal("1600.00")
        assert result.variance == Decimal("0.00")
        assert result.status == VarianceStatus.BALANCED
        assert result.cash_in == Decimal("800.00")
        assert result.cash_out == Decimal("200.00")

    def test_shortage(self, ledger):
        result = reconcile_cash(Decimal("1000"), ledger, Decimal("1550"))

        assert result.variance == Decimal("-50.00")
        assert result.status == VarianceStatus.SHORTAGE

    def test_surplus(self, ledger):
        result = reconcile_cash(Decimal("1000"), ledger, Decimal("1620.50"))

        assert result.variance == Decimal("20.50")
        assert result.status == VarianceStatus.SURPLUS

    def test_without_count_has_no_variance(self, ledger):
        result = reconcile_cash(Decimal("1000"), ledger)

        assert result.expected_balance == Decimal("1600.00")
        assert result.variance is None
        assert result.status is None

    def test_non_cash_movements_only_in_totals(self):
        movements = [
            cash_in("500", "Efectivo"),
            cash_in("1000", "Tarjeta de débito", is_cash=False),
            cash_out("100", "Efectivo"),
            cash_in("50"),
        ]

        result = reconcile_cash(Decimal("0"), movements, Decimal("450"))

        assert result.expected_balance == Decimal("450.00")
        assert result.status == VarianceStatus.BALANCED
        assert result.movements_count == 4
        assert result.cash_movements_count == 3
        assert result.payment_method_totals == {
            "Efectivo": Decimal("400.00"),
            "Tarjeta de débito": Decimal("1000.00"),
            UNDEFINED_PAYMENT_METHOD: Decimal("50.00"),
        }

    def test_classify_variance_tolerance(self):
        assert classify_variance(Decimal("0.009")) == VarianceStatus.BALANCED
        assert classify_variance(Decimal("-0.01")) == VarianceStatus.SHORTAGE
        assert classify_variance(Decimal("0.01")) == VarianceStatus.SURPLUS


class TestCashPaymentMethod:

    def test_keywords(self):
        assert is_cash_payment_method("Efectivo")
        assert is_cash_payment_method("CASH")
        assert is_cash_payment_method("Pago de contado")
        assert not is_cash_payment_method("Tarjeta de crédito")
        assert not is_cash_payment_method("Transferencia")

    def test_only_active_methods_are_cash(self):
        assert PaymentMethod(name="Efectivo", is_active=True).is_cash
        assert not PaymentMethod(name="Efectivo", is_active=False).is_cash

    def test_missing_method_is_cash(self):
        assert is_cash_payment_method(None)
        assert is_cash_payment_method("")

    def test_custom_keywords(self):
        assert is_cash_payment_method("Billetes", keywords=["billete"])
        assert not is_cash_payment_method("Efectivo", keywords=["billete"])


# ===== TESTS DE SERVICIOS =====

@pytest.fixture
def catalogs(db_session, tenant_id):
    PaymentMethodService(db_session).seed_defaults(tenant_id)
    MovementTypeService(db_session).seed_defaults(tenant_id)

    def movement_type(name):
        return db_session.query(MovementType).filter(
            MovementType.tenant_id == tenant_id, MovementType.name == name
        ).one()

    def payment_method(name):
        return db_session.query(PaymentMethod).filter(
            PaymentMethod.tenant_id == tenant_id, PaymentMethod.name == name
        ).one()

    return movement_type, payment_method


@pytest.fixture
def open_register(db_session, tenant_id, user_id):
    return CashRegisterService(db_session).open_cash_register(
        CashRegisterOpen(opening_balance=Decimal("1000")), uuid4(), tenant_id, user_id
    )


def add_movement(db_session, tenant_id, user_id, register, movement_type, amount,
                 payment_method=None, affects_balance=True):
    return CashMovementService(db_session).create_movement(
        CashMovementCreate(
            cash_register_id=register.id,
            movement_type_id=movement_type.id,
            payment_method_id=payment_method.id if payment_method else None,
            amount=Decimal(amount),
            affects_balance=affects_balance
        ),
        tenant_id, user_id
    )


class TestCashRegisterService:

    def test_seed_is_idempotent(self, db_session, tenant_id, catalogs):
        PaymentMethodService(db_session).seed_defaults(tenant_id)
        methods = PaymentMethodService(db_session).get_payment_methods(tenant_id)
        assert len(methods) == 5
        assert [m.name for m in methods if m.is_cash] == ["Efectivo"]

    def test_single_open_register_per_pdv(self, db_session, tenant_id, user_id):
        service = CashRegisterService(db_session)
        pdv_id = uuid4()
        service.open_cash_register(CashRegisterOpen(opening_balance=Decimal("100")), pdv_id, tenant_id, user_id)

        with pytest.raises(HTTPException) as exc_info:
            service.open_cash_register(CashRegisterOpen(opening_balance=Decimal("100")), pdv_id, tenant_id, user_id)

        assert exc_info.value.status_code == 409
        assert service.get_current_cash_register(tenant_id, pdv_id) is not None
        assert service.get_current_cash_register(tenant_id, uuid4()) is None

    def test_movements_update_expected_balance(self, db_session, tenant_id, user_id, catalogs, open_register):
        movement_type, payment_method = catalogs
        efectivo = payment_method("Efectivo")

        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "500", efectivo)
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Ingreso manual"), "300")
        movement = add_movement(db_session, tenant_id, user_id, open_register, movement_type("Egreso manual"), "200", efectivo)

        register = CashRegisterService(db_session).get_cash_register(open_register.id, tenant_id)
        assert register.expected_cash_balance == Decimal("1600.00")
        assert movement.signed_amount == Decimal("-200")

    def test_excluded_movements(self, db_session, tenant_id, user_id, catalogs, open_register):
        movement_type, payment_method = catalogs

        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "1000",
                     payment_method("Tarjeta de débito"))
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "999",
                     payment_method("Efectivo"), affects_balance=False)
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Ajuste del sistema"), "50")

        result = CashRegisterService(db_session).get_reconciliation(open_register.id, tenant_id)

        assert result.expected_balance == Decimal("1000.00")
        assert result.movements_count == 1
        assert result.cash_movements_count == 0
        assert result.payment_method_totals == {"Tarjeta de débito": Decimal("1000.00")}

    def test_inactive_cash_method_not_counted(self, db_session, tenant_id, user_id, catalogs, open_register):
        movement_type, payment_method = catalogs
        efectivo = payment_method("Efectivo")
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "500", efectivo)

        efectivo.is_active = False
        db_session.commit()

        assert efectivo.is_cash is False
        result = CashRegisterService(db_session).get_reconciliation(open_register.id, tenant_id)
        assert result.expected_balance == Decimal("1000.00")
        assert result.cash_movements_count == 0
        assert result.payment_method_totals == {"Efectivo": Decimal("500.00")}
        assert not result.stored_matches

    def test_close_with_shortage(self, db_session, tenant_id, user_id, catalogs, open_register):
        movement_type, payment_method = catalogs
        efectivo = payment_method("Efectivo")
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "500", efectivo)
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Cobro cuenta corriente"), "300", efectivo)
        add_movement(db_session, tenant_id, user_id, open_register, movement_type("Gasto"), "200", efectivo)

        service = CashRegisterService(db_session)
        register = service.close_cash_register(
            open_register.id, CashRegisterClose(closing_balance=Decimal("1550")), tenant_id, user_id
        )

        assert register.status == CashRegisterStatus.CLOSED
        assert register.closed_at is not None
        assert register.cash_difference == Decimal("-50.00")
        assert Decimal(register.payment_method_totals["Efectivo"]) == Decimal("600.00")

        result = service.get_reconciliation(register.id, tenant_id)
        assert result.status == VarianceStatus.SHORTAGE
        assert result.variance == Decimal("-50.00")
        assert result.stored_matches

        recount = service.get_reconciliation(register.id, tenant_id, actual_balance=Decimal("1600"))
        assert recount.status == VarianceStatus.BALANCED

    def test_closed_register_rejects_changes(self, db_session, tenant_id, user_id, catalogs, open_register):
        movement_type, _ = catalogs
        service = CashRegisterService(db_session)
        service.close_cash_register(open_register.id, CashRegisterClose(closing_balance=Decimal("1000")), tenant_id, user_id)

        with pytest.raises(HTTPException) as exc_info:
            service.close_cash_register(open_register.id, CashRegisterClose(closing_balance=Decimal("1000")), tenant_id, user_id)
        assert exc_info.value.status_code == 409

        with pytest.raises(HTTPException) as exc_info:
            add_movement(db_session, tenant_id, user_id, open_register, movement_type("Venta"), "10")
        assert exc_info.value.status_code == 409

    def test_movement_type_from_other_company(self, db_session, tenant_id, user_id, open_register):
        other_tenant = uuid4()
        MovementTypeService(db_session).seed_defaults(other_tenant)
        foreign_type = db_session.query(MovementType).filter(MovementType.tenant_id == other_tenant).first()

        with pytest.raises(HTTPException) as exc_info:
            add_movement(db_session, tenant_id, user_id, open_register, foreign_type, "10")

        assert exc_info.value.status_code == 404

    def test_duplicated_payment_method(self, db_session, tenant_id, catalogs):
        with pytest.raises(HTTPException) as exc_info:
            PaymentMethodService(db_session).create_payment_method(PaymentMethodCreate(name="Efectivo"), tenant_id)
        assert exc_info.value.status_code == 409


# ===== TESTS DE ENDPOINTS =====

class TestPOSEndpoints:

    def test_cash_register_flow(self, client, auth_headers, db_session, tenant_id):
        MovementTypeService(db_session).seed_defaults(tenant_id)
        pdv_id = uuid4()

        cash = client.post("/api/v1/payment-methods/", headers=auth_headers, json={"name": "Efectivo"})
        assert cash.status_code == 201
        assert cash.json()["is_cash"] is True

        types = {t["name"]: t["id"] for t in client.get("/api/v1/movement-types/", headers=auth_headers).json()}

        opened = client.post(f"/api/v1/cash-registers/open?pdv_id={pdv_id}", headers=auth_headers,
                             json={"opening_balance": "1000"})
        assert opened.status_code == 201
        register_id = opened.json()["id"]

        current = client.get(f"/api/v1/cash-registers/current?pdv_id={pdv_id}", headers=auth_headers)
        assert current.json()["id"] == register_id

        for type_name, amount in [("Venta", "500"), ("Ingreso manual", "300"), ("Egreso manual", "200")]:
            created = client.post("/api/v1/cash-movements/", headers=auth_headers, json={
                "cash_register_id": register_id,
                "movement_type_id": types[type_name],
                "payment_method_id": cash.json()["id"],
                "amount": amount
            })
            assert created.status_code == 201

        movements = client.get(f"/api/v1/cash-movements/?cash_register_id={register_id}", headers=auth_headers)
        assert movements.json()["total"] == 3

        closed = client.post(f"/api/v1/cash-registers/{register_id}/close", headers=auth_headers,
                             json={"closing_balance": "1600"})
        assert closed.status_code == 200
        assert closed.json()["status"] == "closed"
        assert Decimal(closed.json()["expected_cash_balance"]) == Decimal("1600.00")

        reconciliation = client.get(f"/api/v1/cash-registers/{register_id}/reconciliation", headers=auth_headers)
        assert reconciliation.status_code == 200
        assert reconciliation.json()["status"] == "balanced"
        assert reconciliation.json()["stored_matches"] is True

        listing = client.get("/api/v1/cash-registers/?status=closed", headers=auth_headers)
        assert listing.json()["total"] == 1

    def test_no_open_register(self, client, auth_headers):
        response = client.get(f"/api/v1/cash-registers/current?pdv_id={uuid4()}", headers=auth_headers)
        assert response.status_code == 404

    def test_viewer_cannot_open_register(self, client, viewer_headers):
        response = client.post(f"/api/v1/cash-registers/open?pdv_id={uuid4()}", headers=viewer_headers,
                               json={"opening_balance": "0"})
        assert response.status_code == 403

    def test_missing_token(self, client, tenant_id):
        response = client.get("/api/v1/payment-methods/", headers={"X-Company-ID": str(tenant_id)})
        assert response.status_code in (401, 403)
