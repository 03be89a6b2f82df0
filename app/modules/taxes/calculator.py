"""
Conciliación de importes de factura para AFIP

AFIP rechaza los comprobantes cuyos importes (neto + IVA + tributos) no suman
exactamente el total informado. Cuando la venta tiene un descuento global, el
neto y el IVA calculados antes del descuento deben escalarse al total final y
el redondeo de cada alícuota deja diferencias de centavos; este módulo las
absorbe para que los componentes cierren al centavo.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional

from app.modules.taxes.schemas import (
    InvoiceAmountInput, VatBreakdownItem, ReconciledInvoiceAmounts
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Código AFIP de alícuota -> porcentaje
DEFAULT_AFIP_VAT_RATES: Dict[int, Decimal] = {
    3: Decimal("0"),
    4: Decimal("10.5"),
    5: Decimal("21"),
    6: Decimal("27"),
}
DEFAULT_VAT_ID = 5
DEFAULT_VAT_RATE = Decimal("21")


class InvalidAmountError(ValueError):
    """Importes de la venta inconsistentes (ej. tributos mayores al total)"""


def round_money(value) -> Decimal:
    """Redondear a 2 decimales, mitad alejándose de cero (redondeo comercial)"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class VatRateTable:
    """
    Tabla de alícuotas de IVA por código AFIP

    Los códigos desconocidos usan la alícuota por defecto (21%).
    """

    def __init__(
        self,
        rates: Optional[Mapping[int, Decimal]] = None,
        default_rate: Decimal = DEFAULT_VAT_RATE,
        default_vat_id: int = DEFAULT_VAT_ID
    ):
        source = DEFAULT_AFIP_VAT_RATES if rates is None else rates
        self.rates = {int(afip_id): Decimal(str(rate)) for afip_id, rate in source.items()}
        self.default_rate = Decimal(str(default_rate))
        self.default_vat_id = default_vat_id

    @classmethod
    def from_settings(cls) -> "VatRateTable":
        from app.core.config import settings
        return cls(
            rates=settings.AFIP_VAT_RATES,
            default_rate=settings.AFIP_DEFAULT_VAT_RATE,
            default_vat_id=settings.AFIP_DEFAULT_VAT_ID
        )

    def rate_for(self, vat_rate_id: int) -> Decimal:
        return self.rates.get(vat_rate_id, self.default_rate)

    def afip_id_for_rate(self, rate) -> Optional[int]:
        """
        Mapear un porcentaje de IVA a su código AFIP

        Compara con un decimal (10.5 == 10.50). Retorna None si la tasa no
        corresponde a ninguna alícuota conocida.
        """
        tenth = Decimal("0.1")
        rounded = Decimal(str(rate)).quantize(tenth, rounding=ROUND_HALF_UP)
        for afip_id, known_rate in self.rates.items():
            if known_rate.quantize(tenth, rounding=ROUND_HALF_UP) == rounded:
                return afip_id
        return None


class InvoiceAmountReconciler:
    """Ajusta neto, IVA y tributos para que sumen exactamente el total final"""

    def __init__(self, rate_table: Optional[VatRateTable] = None):
        self.rate_table = rate_table or VatRateTable()

    def reconcile(self, data: InvoiceAmountInput) -> ReconciledInvoiceAmounts:
        """
        Conciliar los importes de una venta contra su total con descuento

        Args:
            data: Neto, IVA por alícuota y tributos antes del descuento, y total final

        Returns:
            Importes ajustados cuya suma coincide al centavo con el total final

        Raises:
            InvalidAmountError: si los tributos superan el total final
        """
        breakdown = self._breakdown_pre_discount(data)

        taxable_pre_discount = round_money(
            data.subtotal_net + sum((item.amount for item in breakdown), ZERO)
        )
        extra_taxes_total = round_money(sum((tax.amount for tax in data.extra_taxes), ZERO))
        # Los tributos no se descuentan: pasan sin cambios
        target_taxable_total = round_money(data.final_total - extra_taxes_total)

        if target_taxable_total < 0:
            raise InvalidAmountError(
                f"Los tributos ({extra_taxes_total}) superan el total de la venta ({data.final_total})"
            )

        adjustment_factor = Decimal("1")
        if taxable_pre_discount > 0 and abs(taxable_pre_discount - target_taxable_total) > CENT:
            adjustment_factor = target_taxable_total / taxable_pre_discount
            logger.debug(
                f"Escalando importes gravados {taxable_pre_discount} -> {target_taxable_total} "
                f"(factor {adjustment_factor})"
            )

        net_amount = ZERO
        vat_total = ZERO
        adjusted: List[VatBreakdownItem] = []

        for item in breakdown:
            adjusted_base = round_money(item.base_amount * adjustment_factor)
            rate = self.rate_table.rate_for(item.vat_rate_id)
            adjusted_amount = round_money(adjusted_base * rate / HUNDRED)

            adjusted.append(VatBreakdownItem(
                vat_rate_id=item.vat_rate_id,
                base_amount=adjusted_base,
                amount=adjusted_amount
            ))
            net_amount += adjusted_base
            vat_total += adjusted_amount

        current_taxable_sum = round_money(net_amount + vat_total)
        diff = round_money(target_taxable_total - current_taxable_sum)
        if diff != 0:
            if adjusted:
                # El residuo va a la base de la primera alícuota, nunca al importe de IVA
                first = adjusted[0]
                adjusted[0] = first.model_copy(
                    update={"base_amount": round_money(first.base_amount + diff)}
                )
                net_amount = round_money(net_amount + diff)
                logger.info(
                    f"Residuo de redondeo {diff} absorbido en la base de la alícuota {first.vat_rate_id}"
                )
            else:
                net_amount = target_taxable_total

        net_amount = round_money(net_amount)
        vat_total = round_money(vat_total)

        return ReconciledInvoiceAmounts(
            net_amount=net_amount,
            vat_total=vat_total,
            vat_breakdown=adjusted,
            extra_taxes=list(data.extra_taxes),
            extra_taxes_total=extra_taxes_total,
            grand_total=round_money(net_amount + vat_total + extra_taxes_total),
            adjustment_factor=adjustment_factor
        )

    def _breakdown_pre_discount(self, data: InvoiceAmountInput) -> List[VatBreakdownItem]:
        if data.vat_breakdown:
            breakdown_total = round_money(sum((item.amount for item in data.vat_breakdown), ZERO))
            if data.vat_amount and round_money(data.vat_amount) != breakdown_total:
                logger.warning(
                    f"IVA informado ({data.vat_amount}) difiere del desglose ({breakdown_total}); "
                    f"se usa el desglose"
                )
            return list(data.vat_breakdown)

        # Venta con IVA total pero sin desglose: una sola alícuota por defecto,
        # con el importe recalculado sobre el neto
        if data.vat_amount > 0:
            vat_id = self.rate_table.default_vat_id
            base_amount = round_money(data.subtotal_net)
            return [VatBreakdownItem(
                vat_rate_id=vat_id,
                base_amount=base_amount,
                amount=round_money(base_amount * self.rate_table.rate_for(vat_id) / HUNDRED)
            )]

        return []


def reconcile_invoice_amounts(
    data: InvoiceAmountInput,
    rate_table: Optional[VatRateTable] = None
) -> ReconciledInvoiceAmounts:
    return InvoiceAmountReconciler(rate_table).reconcile(data)


def get_standard_argentine_vat_rates() -> List[Dict]:
    """
    Alícuotas de IVA vigentes con su código AFIP
    Útil para semillas e interfaces de usuario
    """
    return [
        {"afip_id": 3, "name": "IVA 0%", "rate": Decimal("0")},
        {"afip_id": 4, "name": "IVA 10.5%", "rate": Decimal("10.5")},
        {"afip_id": 5, "name": "IVA 21%", "rate": Decimal("21")},
        {"afip_id": 6, "name": "IVA 27%", "rate": Decimal("27")},
    ]
