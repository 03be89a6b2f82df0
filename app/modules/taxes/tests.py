"""
Tests para la conciliación de importes de factura y las alícuotas de IVA

Cubren:
- Conciliación exacta contra el total con descuento (con y sin tributos)
- Casos borde: sin descuento, base imponible cero, tributos mayores al total
- Tabla de alícuotas por código AFIP
- Endpoints /taxes/reconcile y /taxes/vat-rates
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from app.modules.taxes.calculator import (
    InvoiceAmountReconciler, InvalidAmountError, VatRateTable,
    reconcile_invoice_amounts, round_money
)
from app.modules.taxes.schemas import (
    InvoiceAmountInput, VatBreakdownItem, ExtraTaxAmount, VatRateCreate
)
from app.modules.taxes.models import VatRate
from app.modules.taxes.service import TaxService, create_global_vat_rates


def _total(result):
    return round_money(result.net_amount + result.vat_total + result.extra_taxes_total)


@pytest.fixture
def discounted_sale():
    """Venta 21% con descuento global (caso reportado por AFIP)"""
    return InvoiceAmountInput(
        subtotal_net=Decimal("15537.20"),
        vat_amount=Decimal("3262.81"),
        final_total=Decimal("15040.00"),
        vat_breakdown=[
            VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("15537.20"), amount=Decimal("3262.81"))
        ]
    )


# ===== TESTS DEL CONCILIADOR =====

class TestInvoiceAmountReconciler:
    """Tests para InvoiceAmountReconciler"""

    def test_discounted_sale_matches_total(self, discounted_sale):
        result = reconcile_invoice_amounts(discounted_sale)

        assert result.net_amount + result.vat_total == Decimal("15040.00")
        assert result.grand_total == Decimal("15040.00")
        assert result.adjustment_factor < 1
        assert len(result.vat_breakdown) == 1
        assert result.vat_breakdown[0].vat_rate_id == 5

    def test_extra_taxes_are_not_discounted(self, discounted_sale):
        data = discounted_sale.model_copy(update={
            "final_total": Decimal("15140.00"),
            "extra_taxes": [ExtraTaxAmount(tax_id=7, amount=Decimal("100.0"))]
        })

        result = reconcile_invoice_amounts(data)

        assert result.extra_taxes_total == Decimal("100.00")
        assert result.net_amount + result.vat_total + Decimal("100.0") == Decimal("15140.00")
        assert result.grand_total == Decimal("15140.00")

    def test_no_discount_returns_original_amounts(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("1000.00"),
            vat_amount=Decimal("210.00"),
            final_total=Decimal("1210.00"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("1000.00"), amount=Decimal("210.00"))
            ]
        )

        result = reconcile_invoice_amounts(data)

        assert result.adjustment_factor == Decimal("1")
        assert result.net_amount == Decimal("1000.00")
        assert result.vat_total == Decimal("210.00")
        assert result.vat_breakdown[0].base_amount == Decimal("1000.00")
        assert result.vat_breakdown[0].amount == Decimal("210.00")

    def test_single_bracket_keeps_proportion(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("1000.00"),
            vat_amount=Decimal("210.00"),
            final_total=Decimal("1000.00"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("1000.00"), amount=Decimal("210.00"))
            ]
        )

        result = reconcile_invoice_amounts(data)
        adjusted = result.vat_breakdown[0]

        assert abs(adjusted.base_amount - Decimal("1000.00") * result.adjustment_factor) <= Decimal("0.01")
        assert adjusted.amount == round_money(adjusted.base_amount * Decimal("0.21"))
        assert _total(result) == Decimal("1000.00")

    def test_multiple_brackets_match_total(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("1333.33"),
            vat_amount=Decimal("231.33"),
            final_total=Decimal("1400.00"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("777.77"), amount=Decimal("163.33")),
                VatBreakdownItem(vat_rate_id=4, base_amount=Decimal("555.56"), amount=Decimal("58.33")),
            ]
        )

        result = reconcile_invoice_amounts(data)

        assert _total(result) == Decimal("1400.00")
        # El IVA de cada alícuota se recalcula sobre la base ajustada
        second = result.vat_breakdown[1]
        assert second.amount == round_money(second.base_amount * Decimal("10.5") / Decimal("100"))
        assert result.vat_total == sum(item.amount for item in result.vat_breakdown)

    def test_rounding_residual_goes_to_first_bracket_base(self):
        """Un centavo de residuo se suma a la base de la primera alícuota, nunca al IVA"""
        data = InvoiceAmountInput(
            subtotal_net=Decimal("200.00"),
            vat_amount=Decimal("31.50"),
            final_total=Decimal("200.00"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("100.00"), amount=Decimal("21.00")),
                VatBreakdownItem(vat_rate_id=4, base_amount=Decimal("100.00"), amount=Decimal("10.50")),
            ]
        )

        result = reconcile_invoice_amounts(data)
        first, second = result.vat_breakdown
        scaled_base = round_money(Decimal("100.00") * result.adjustment_factor)

        # 86.39 + 18.14 + 86.39 + 9.07 = 199.99 -> residuo de 0.01
        assert scaled_base == Decimal("86.39")
        assert first.base_amount == scaled_base + Decimal("0.01")
        assert second.base_amount == scaled_base
        assert first.amount == round_money(scaled_base * Decimal("0.21"))
        assert second.amount == round_money(scaled_base * Decimal("0.105"))
        assert result.net_amount == Decimal("172.79")
        assert result.vat_total == Decimal("27.21")
        assert _total(result) == Decimal("200.00")

    def test_rounding_residual_single_bracket(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("100.00"),
            vat_amount=Decimal("21.00"),
            final_total=Decimal("100.00"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("100.00"), amount=Decimal("21.00"))
            ]
        )

        result = reconcile_invoice_amounts(data)

        assert result.vat_breakdown[0].base_amount == Decimal("82.65")
        assert result.vat_breakdown[0].amount == Decimal("17.35")
        assert result.net_amount == Decimal("82.65")
        assert _total(result) == Decimal("100.00")

    def test_zero_taxable_base(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("0"),
            final_total=Decimal("100"),
        )

        result = reconcile_invoice_amounts(data)

        assert result.net_amount == Decimal("100.00")
        assert result.vat_total == Decimal("0.00")
        assert result.vat_breakdown == []

    def test_vat_without_breakdown_uses_default_rate(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("15537.20"),
            vat_amount=Decimal("3262.81"),
            final_total=Decimal("15040.00"),
        )

        result = reconcile_invoice_amounts(data)

        assert result.vat_breakdown[0].vat_rate_id == 5
        assert result.net_amount + result.vat_total == Decimal("15040.00")

    def test_default_bracket_recomputes_vat_from_base(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("100.00"),
            vat_amount=Decimal("25.00"),
            final_total=Decimal("121.00"),
        )

        result = reconcile_invoice_amounts(data)

        assert result.adjustment_factor == Decimal("1")
        assert result.vat_breakdown[0].base_amount == Decimal("100.00")
        assert result.vat_breakdown[0].amount == Decimal("21.00")
        assert result.vat_total == Decimal("21.00")
        assert _total(result) == Decimal("121.00")

    def test_extra_taxes_above_total_raise(self):
        data = InvoiceAmountInput(
            subtotal_net=Decimal("100"),
            final_total=Decimal("50"),
            extra_taxes=[ExtraTaxAmount(tax_id=7, amount=Decimal("80"))]
        )

        with pytest.raises(InvalidAmountError):
            reconcile_invoice_amounts(data)

    def test_negative_breakdown_rejected(self):
        with pytest.raises(ValueError):
            InvoiceAmountInput(
                subtotal_net=Decimal("100"),
                final_total=Decimal("121"),
                vat_breakdown=[
                    VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("-100"), amount=Decimal("21"))
                ]
            )

    def test_custom_rate_table(self):
        table = VatRateTable(rates={5: Decimal("20")})
        data = InvoiceAmountInput(
            subtotal_net=Decimal("100"),
            vat_amount=Decimal("20"),
            final_total=Decimal("60"),
            vat_breakdown=[
                VatBreakdownItem(vat_rate_id=5, base_amount=Decimal("100"), amount=Decimal("20"))
            ]
        )

        result = InvoiceAmountReconciler(table).reconcile(data)

        assert result.vat_breakdown[0].base_amount == Decimal("50.00")
        assert result.vat_breakdown[0].amount == Decimal("10.00")


class TestRoundMoney:
    """Redondeo comercial: la mitad se aleja de cero"""

    def test_half_rounds_away_from_zero(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("-0.125")) == Decimal("-0.13")
        assert round_money(Decimal("0.124")) == Decimal("0.12")

    def test_float_input_uses_its_decimal_text(self):
        assert round_money(2.675) == Decimal("2.68")
        assert round_money(10) == Decimal("10.00")


class TestVatRateTable:

    def test_unknown_id_uses_default_rate(self):
        table = VatRateTable()
        assert table.rate_for(99) == Decimal("21")
        assert table.rate_for(4) == Decimal("10.5")

    def test_afip_id_for_rate(self):
        table = VatRateTable()
        assert table.afip_id_for_rate(Decimal("21.00")) == 5
        assert table.afip_id_for_rate(Decimal("10.50")) == 4
        assert table.afip_id_for_rate(0) == 3
        assert table.afip_id_for_rate(Decimal("15")) is None


# ===== TESTS DE SERVICIO =====

class TestTaxService:

    def test_rate_table_falls_back_to_settings(self, db_session, tenant_id):
        table = TaxService(db_session).get_rate_table(tenant_id)
        assert table.rate_for(6) == Decimal("27")

    def test_company_rate_overrides_global(self, db_session, tenant_id):
        create_global_vat_rates(db_session)
        service = TaxService(db_session)
        service.create_vat_rate(
            VatRateCreate(afip_id=5, name="IVA 20% (prueba)", rate=Decimal("20")),
            tenant_id
        )

        table = service.get_rate_table(tenant_id)

        assert table.rate_for(5) == Decimal("20")
        assert table.rate_for(4) == Decimal("10.5")
        # Otra empresa sigue viendo la alícuota global
        assert service.get_rate_table(uuid4()).rate_for(5) == Decimal("21")

    def test_global_rates_seed_is_idempotent(self, db_session):
        create_global_vat_rates(db_session)
        create_global_vat_rates(db_session)
        assert db_session.query(VatRate).count() == 4


# ===== TESTS DE ENDPOINTS =====

class TestTaxesEndpoints:

    def test_reconcile_endpoint(self, client, auth_headers):
        response = client.post("/taxes/reconcile", headers=auth_headers, json={
            "subtotal_net": "15537.20",
            "vat_amount": "3262.81",
            "final_total": "15140.00",
            "extra_taxes": [{"tax_id": 7, "amount": "100.00"}],
            "vat_breakdown": [{"vat_rate_id": 5, "base_amount": "15537.20", "amount": "3262.81"}]
        })

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["grand_total"]) == Decimal("15140.00")
        assert Decimal(body["net_amount"]) + Decimal(body["vat_total"]) == Decimal("15040.00")

    def test_reconcile_endpoint_rejects_inconsistent_amounts(self, client, auth_headers):
        response = client.post("/taxes/reconcile", headers=auth_headers, json={
            "subtotal_net": "100",
            "final_total": "50",
            "extra_taxes": [{"tax_id": 7, "amount": "80"}]
        })

        assert response.status_code == 422

    def test_reconcile_requires_role(self, client, viewer_headers):
        response = client.post("/taxes/reconcile", headers=viewer_headers, json={
            "subtotal_net": "100",
            "final_total": "121"
        })
        assert response.status_code == 403

    def test_vat_rates_crud(self, client, auth_headers, db_session):
        create_global_vat_rates(db_session)

        response = client.post("/taxes/vat-rates", headers=auth_headers, json={
            "afip_id": 5, "name": "IVA 21% propio", "rate": "21"
        })
        assert response.status_code == 201
        vat_rate_id = response.json()["id"]

        duplicated = client.post("/taxes/vat-rates", headers=auth_headers, json={
            "afip_id": 5, "name": "Otro", "rate": "21"
        })
        assert duplicated.status_code == 409

        updated = client.patch(f"/taxes/vat-rates/{vat_rate_id}", headers=auth_headers, json={"name": "IVA general"})
        assert updated.status_code == 200
        assert updated.json()["name"] == "IVA general"

        listing = client.get("/taxes/vat-rates", headers=auth_headers)
        assert listing.status_code == 200
        assert listing.json()["total"] == 5

    def test_global_vat_rate_not_editable(self, client, auth_headers, db_session):
        create_global_vat_rates(db_session)
        global_rate = db_session.query(VatRate).filter(VatRate.afip_id == 5).first()

        response = client.patch(f"/taxes/vat-rates/{global_rate.id}", headers=auth_headers, json={"rate": "22"})

        assert response.status_code == 403
