from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import Optional
from uuid import UUID
import logging

from app.core.config import settings
from app.modules.taxes.models import VatRate
from app.modules.taxes.schemas import (
    VatRateCreate, VatRateUpdate, InvoiceAmountInput, ReconciledInvoiceAmounts
)
from app.modules.taxes.calculator import (
    InvoiceAmountReconciler, InvalidAmountError, VatRateTable,
    get_standard_argentine_vat_rates
)

logger = logging.getLogger(__name__)


class TaxService:
    def __init__(self, db: Session):
        self.db = db

    def _available_rates_query(self, company_id: Optional[UUID]):
        return self.db.query(VatRate).filter(
            (VatRate.company_id == company_id) | (VatRate.company_id.is_(None))
        )

    def get_rate_table(self, company_id: Optional[UUID]) -> VatRateTable:
        """
        Armar la tabla de alícuotas de la empresa

        Las alícuotas propias pisan a las globales con el mismo código AFIP.
        Sin alícuotas cargadas se usa la tabla de la configuración.
        """
        rows = self._available_rates_query(company_id).filter(VatRate.is_active == True).all()
        if not rows:
            return VatRateTable.from_settings()

        rates = {}
        # Globales primero para que las propias las sobrescriban
        for row in sorted(rows, key=lambda r: r.company_id is not None):
            rates[row.afip_id] = row.rate

        return VatRateTable(
            rates=rates,
            default_rate=settings.AFIP_DEFAULT_VAT_RATE,
            default_vat_id=settings.AFIP_DEFAULT_VAT_ID
        )

    def reconcile_amounts(self, data: InvoiceAmountInput, company_id: Optional[UUID]) -> ReconciledInvoiceAmounts:
        """Conciliar importes de factura con la tabla de alícuotas de la empresa"""
        reconciler = InvoiceAmountReconciler(self.get_rate_table(company_id))
        try:
            return reconciler.reconcile(data)
        except InvalidAmountError as e:
            logger.warning(f"Importes inconsistentes para la empresa {company_id}: {e}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(e)
            )

    def get_vat_rates(self, company_id: UUID, limit: int = 100, offset: int = 0) -> dict:
        """Obtener alícuotas disponibles (globales + propias de la empresa)"""
        query = self._available_rates_query(company_id).order_by(VatRate.afip_id)
        total = query.count()
        vat_rates = query.offset(offset).limit(limit).all()

        return {
            "vat_rates": vat_rates,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    def create_vat_rate(self, data: VatRateCreate, company_id: UUID) -> VatRate:
        """Crear una alícuota propia de la empresa"""
        try:
            existing = self.db.query(VatRate).filter(
                VatRate.company_id == company_id,
                VatRate.afip_id == data.afip_id
            ).first()

            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe una alícuota con código AFIP {data.afip_id} en esta empresa"
                )

            vat_rate = VatRate(
                **data.model_dump(),
                company_id=company_id,
                is_editable=True
            )

            self.db.add(vat_rate)
            self.db.commit()
            self.db.refresh(vat_rate)
            return vat_rate

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe una alícuota con código AFIP {data.afip_id} en esta empresa"
            )
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )

    def update_vat_rate(self, vat_rate_id: UUID, data: VatRateUpdate, company_id: UUID) -> VatRate:
        """Actualizar una alícuota propia (las globales no son editables)"""
        try:
            vat_rate = self._available_rates_query(company_id).filter(VatRate.id == vat_rate_id).first()

            if not vat_rate:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND,
                    detail="Alícuota no encontrada"
                )

            if not vat_rate.is_editable or vat_rate.company_id is None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="No se pueden editar alícuotas globales"
                )

            for field, value in data.model_dump(exclude_unset=True).items():
                if value is not None:
                    setattr(vat_rate, field, value)

            self.db.commit()
            self.db.refresh(vat_rate)
            return vat_rate

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Error interno del servidor: {str(e)}"
            )


# Función helper para crear alícuotas globales AFIP (usar en seeds/migraciones)
def create_global_vat_rates(db: Session):
    """Crear alícuotas globales de AFIP si no existen"""
    for rate_data in get_standard_argentine_vat_rates():
        existing = db.query(VatRate).filter(
            VatRate.afip_id == rate_data["afip_id"],
            VatRate.company_id.is_(None)
        ).first()

        if not existing:
            db.add(VatRate(**rate_data, company_id=None, is_editable=False))

    db.commit()
