"""
Preparación de importes de ventas para autorizar ante AFIP

Arma la entrada del conciliador a partir de la venta guardada (IVA agrupado por
código AFIP, tributos de IIBB e impuestos internos), concilia contra el total
con descuento y guarda los importes resultantes en la venta.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from decimal import Decimal
from typing import Dict, List
from uuid import UUID
from datetime import datetime
import logging

from app.core.config import settings
from app.modules.sales.models import Sale, SaleIva
from app.modules.sales.schemas import SaleCreate
from app.modules.taxes.calculator import (
    InvoiceAmountReconciler, InvalidAmountError, VatRateTable, round_money, HUNDRED
)
from app.modules.taxes.schemas import (
    InvoiceAmountInput, VatBreakdownItem, ExtraTaxAmount, ReconciledInvoiceAmounts
)
from app.modules.taxes.service import TaxService

logger = logging.getLogger(__name__)


class SaleInvoiceService:
    """Servicio de ventas e importes para facturación electrónica"""

    def __init__(self, db: Session):
        self.db = db

    def create_sale(self, sale_data: SaleCreate, tenant_id: UUID) -> Sale:
        """Registrar una venta con su IVA por alícuota"""
        try:
            sale = Sale(
                tenant_id=tenant_id,
                **sale_data.model_dump(exclude={"ivas"})
            )
            for iva in sale_data.ivas:
                sale.ivas.append(SaleIva(**iva.model_dump()))

            self.db.add(sale)
            self.db.commit()
            self.db.refresh(sale)
            return sale

        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def get_sale(self, sale_id: UUID, tenant_id: UUID) -> Sale:
        sale = self.db.query(Sale).options(
            selectinload(Sale.ivas)
        ).filter(
            Sale.id == sale_id,
            Sale.tenant_id == tenant_id
        ).first()

        if not sale:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Venta no encontrada"
            )
        return sale

    def build_reconciliation_input(self, sale: Sale, rate_table: VatRateTable) -> InvoiceAmountInput:
        """
        Armar la entrada del conciliador desde una venta

        El IVA se agrupa por código AFIP y cada importe se recalcula como
        base x alícuota (AFIP exige esa igualdad, error 10051).
        """
        grouped: Dict[int, Dict[str, Decimal]] = {}
        for sale_iva in sale.ivas:
            afip_id = rate_table.afip_id_for_rate(sale_iva.rate)
            if afip_id is None:
                logger.warning(
                    f"Venta {sale.id}: alícuota {sale_iva.rate}% sin código AFIP, se omite"
                )
                continue

            base_amount = round_money(sale_iva.base_amount or 0)
            tax_amount = round_money(base_amount * Decimal(str(sale_iva.rate)) / HUNDRED)

            if afip_id in grouped:
                grouped[afip_id]["base_amount"] = round_money(grouped[afip_id]["base_amount"] + base_amount)
                grouped[afip_id]["amount"] = round_money(grouped[afip_id]["amount"] + tax_amount)
            else:
                grouped[afip_id] = {"base_amount": base_amount, "amount": tax_amount}

        vat_breakdown = [
            VatBreakdownItem(vat_rate_id=afip_id, **amounts)
            for afip_id, amounts in grouped.items()
        ]

        extra_taxes: List[ExtraTaxAmount] = []
        if sale.iibb and sale.iibb > 0:
            extra_taxes.append(ExtraTaxAmount(tax_id=settings.AFIP_IIBB_TRIBUTE_ID, amount=sale.iibb))
        if sale.internal_tax and sale.internal_tax > 0:
            extra_taxes.append(ExtraTaxAmount(tax_id=settings.AFIP_INTERNAL_TAX_TRIBUTE_ID, amount=sale.internal_tax))

        return InvoiceAmountInput(
            subtotal_net=sale.subtotal or 0,
            vat_amount=sale.total_iva_amount or 0,
            final_total=sale.total,
            extra_taxes=extra_taxes,
            vat_breakdown=vat_breakdown
        )

    def prepare_invoice_amounts(self, sale_id: UUID, tenant_id: UUID) -> ReconciledInvoiceAmounts:
        """Conciliar los importes de la venta y guardarlos antes de enviarla a AFIP"""
        try:
            sale = self.get_sale(sale_id, tenant_id)

            if sale.total is None or sale.total <= 0:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="El total de la venta debe ser mayor a cero"
                )

            rate_table = TaxService(self.db).get_rate_table(tenant_id)
            data = self.build_reconciliation_input(sale, rate_table)

            try:
                result = InvoiceAmountReconciler(rate_table).reconcile(data)
            except InvalidAmountError as e:
                logger.warning(f"Venta {sale.id}: {e}")
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=str(e)
                )

            sale.afip_net_amount = result.net_amount
            sale.afip_iva_total = result.vat_total
            sale.afip_tributes_total = result.extra_taxes_total
            sale.afip_total = result.grand_total
            sale.amounts_reconciled_at = datetime.utcnow()

            self.db.commit()

            logger.info(
                f"Venta {sale.id} conciliada: neto {result.net_amount}, IVA {result.vat_total}, "
                f"tributos {result.extra_taxes_total}, total {result.grand_total}"
            )
            return result

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )


def build_afip_amounts_payload(result: ReconciledInvoiceAmounts) -> dict:
    """Convertir importes conciliados al formato del cliente de AFIP"""
    return {
        "netAmount": float(result.net_amount),
        "ivaTotal": float(result.vat_total),
        "ivaItems": [
            {
                "id": item.vat_rate_id,
                "baseAmount": float(item.base_amount),
                "amount": float(item.amount),
            }
            for item in result.vat_breakdown
        ],
        "tributes": [
            {"id": tax.tax_id, "importe": float(round_money(tax.amount))}
            for tax in result.extra_taxes
        ],
        "tributesTotal": float(result.extra_taxes_total),
        "total": float(result.grand_total),
    }
