"""
Tests para la preparación de importes de ventas ante AFIP
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi import HTTPException

from app.modules.sales.models import Sale, SaleIva
from app.modules.sales.schemas import SaleCreate, SaleIvaCreate
from app.modules.sales.service import SaleInvoiceService, build_afip_amounts_payload
from app.modules.taxes.calculator import VatRateTable


@pytest.fixture
def discounted_sale_data():
    return SaleCreate(
        receipt_number="0001-00000123",
        subtotal=Decimal("15537.20"),
        total_iva_amount=Decimal("3262.81"),
        total=Decimal("15040.00"),
        ivas=[SaleIvaCreate(rate=Decimal("21"), base_amount=Decimal("15537.20"), amount=Decimal("3262.81"))]
    )


class TestBuildReconciliationInput:

    def test_groups_vat_by_afip_id(self):
        sale = Sale(
            subtotal=Decimal("350.00"),
            total_iva_amount=Decimal("52.50"),
            total=Decimal("402.50"),
            iibb=Decimal("0"),
            internal_tax=Decimal("0")
        )
        sale.ivas = [
            SaleIva(rate=Decimal("21.00"), base_amount=Decimal("100.00"), amount=Decimal("21.00")),
            SaleIva(rate=Decimal("21.00"), base_amount=Decimal("50.00"), amount=Decimal("10.49")),
            SaleIva(rate=Decimal("10.50"), base_amount=Decimal("200.00"), amount=Decimal("21.00")),
        ]

        data = SaleInvoiceService(None).build_reconciliation_input(sale, VatRateTable())
        by_id = {item.vat_rate_id: item for item in data.vat_breakdown}

        assert set(by_id) == {4, 5}
        assert by_id[5].base_amount == Decimal("150.00")
        # El importe se recalcula como base x alícuota
        assert by_id[5].amount == Decimal("31.50")
        assert by_id[4].amount == Decimal("21.00")
        assert data.extra_taxes == []

    def test_unknown_rate_is_skipped(self):
        sale = Sale(subtotal=Decimal("100"), total=Decimal("115"), iibb=Decimal("0"), internal_tax=Decimal("0"))
        sale.ivas = [SaleIva(rate=Decimal("15"), base_amount=Decimal("100"), amount=Decimal("15"))]

        data = SaleInvoiceService(None).build_reconciliation_input(sale, VatRateTable())

        assert data.vat_breakdown == []

    def test_iibb_and_internal_tax_become_tributes(self):
        sale = Sale(
            subtotal=Decimal("100"),
            total=Decimal("136"),
            iibb=Decimal("10"),
            internal_tax=Decimal("5")
        )
        sale.ivas = [SaleIva(rate=Decimal("21"), base_amount=Decimal("100"), amount=Decimal("21"))]

        data = SaleInvoiceService(None).build_reconciliation_input(sale, VatRateTable())

        assert [(tax.tax_id, tax.amount) for tax in data.extra_taxes] == [
            (7, Decimal("10")),
            (4, Decimal("5")),
        ]


class TestSaleInvoiceService:

    def test_prepare_invoice_amounts_stores_reconciled_amounts(self, db_session, tenant_id, discounted_sale_data):
        service = SaleInvoiceService(db_session)
        sale = service.create_sale(discounted_sale_data, tenant_id)

        result = service.prepare_invoice_amounts(sale.id, tenant_id)

        assert result.net_amount + result.vat_total == Decimal("15040.00")
        stored = service.get_sale(sale.id, tenant_id)
        assert stored.afip_total == Decimal("15040.00")
        assert stored.afip_net_amount + stored.afip_iva_total == Decimal("15040.00")
        assert stored.amounts_reconciled_at is not None

    def test_prepare_with_iibb(self, db_session, tenant_id, discounted_sale_data):
        data = discounted_sale_data.model_copy(update={"iibb": Decimal("100.00"), "total": Decimal("15140.00")})
        service = SaleInvoiceService(db_session)
        sale = service.create_sale(data, tenant_id)

        result = service.prepare_invoice_amounts(sale.id, tenant_id)

        assert result.extra_taxes_total == Decimal("100.00")
        assert result.net_amount + result.vat_total + Decimal("100.00") == Decimal("15140.00")

    def test_tributes_above_total_rejected(self, db_session, tenant_id):
        service = SaleInvoiceService(db_session)
        sale = service.create_sale(SaleCreate(
            subtotal=Decimal("100"),
            iibb=Decimal("200"),
            total=Decimal("150"),
        ), tenant_id)

        with pytest.raises(HTTPException) as exc_info:
            service.prepare_invoice_amounts(sale.id, tenant_id)

        assert exc_info.value.status_code == 422

    def test_sale_from_other_company_not_found(self, db_session, tenant_id, discounted_sale_data):
        service = SaleInvoiceService(db_session)
        sale = service.create_sale(discounted_sale_data, tenant_id)

        with pytest.raises(HTTPException) as exc_info:
            service.prepare_invoice_amounts(sale.id, uuid4())

        assert exc_info.value.status_code == 404


class TestAfipPayload:

    def test_payload_format(self, db_session, tenant_id, discounted_sale_data):
        data = discounted_sale_data.model_copy(update={"iibb": Decimal("100.00"), "total": Decimal("15140.00")})
        service = SaleInvoiceService(db_session)
        sale = service.create_sale(data, tenant_id)

        payload = build_afip_amounts_payload(service.prepare_invoice_amounts(sale.id, tenant_id))

        assert payload["total"] == 15140.0
        assert payload["tributes"] == [{"id": 7, "importe": 100.0}]
        assert payload["tributesTotal"] == 100.0
        assert payload["ivaItems"][0]["id"] == 5
        assert round(payload["netAmount"] + payload["ivaTotal"], 2) == 15040.0


class TestSalesEndpoints:

    def test_create_and_prepare_sale(self, client, auth_headers):
        response = client.post("/sales/", headers=auth_headers, json={
            "subtotal": "15537.20",
            "total_iva_amount": "3262.81",
            "total": "15040.00",
            "ivas": [{"rate": "21", "base_amount": "15537.20", "amount": "3262.81"}]
        })
        assert response.status_code == 201
        sale_id = response.json()["id"]

        amounts = client.post(f"/sales/{sale_id}/invoice-amounts", headers=auth_headers)
        assert amounts.status_code == 200
        assert amounts.json()["total"] == 15040.0

        sale = client.get(f"/sales/{sale_id}", headers=auth_headers)
        assert sale.status_code == 200
        assert Decimal(sale.json()["afip_total"]) == Decimal("15040.00")

    def test_missing_sale_returns_404(self, client, auth_headers):
        response = client.post(f"/sales/{uuid4()}/invoice-amounts", headers=auth_headers)
        assert response.status_code == 404

    def test_missing_company_header(self, client, auth_headers):
        headers = {"Authorization": auth_headers["Authorization"]}
        response = client.get(f"/sales/{uuid4()}", headers=headers)
        assert response.status_code == 400
