from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from uuid import UUID

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.taxes.service import TaxService
from app.modules.taxes.schemas import (
    VatRateCreate, VatRateUpdate, VatRateOut, VatRateList,
    InvoiceAmountInput, ReconciledInvoiceAmounts
)

taxes_router = APIRouter(prefix="/taxes", tags=["Taxes"])


@taxes_router.get("/vat-rates", response_model=VatRateList)
def list_vat_rates(
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "accountant", "viewer"]))
):
    """
    Listar alícuotas de IVA disponibles (globales AFIP + propias de la empresa)
    """
    service = TaxService(db)
    return service.get_vat_rates(auth_context.tenant_id, limit, offset)


@taxes_router.post("/vat-rates", response_model=VatRateOut, status_code=status.HTTP_201_CREATED)
def create_vat_rate(
    data: VatRateCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    """
    Crear una alícuota propia de la empresa

    Pisa a la alícuota global con el mismo código AFIP al conciliar facturas.
    """
    service = TaxService(db)
    return service.create_vat_rate(data, auth_context.tenant_id)


@taxes_router.patch("/vat-rates/{vat_rate_id}", response_model=VatRateOut)
def update_vat_rate(
    vat_rate_id: UUID,
    data: VatRateUpdate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    service = TaxService(db)
    return service.update_vat_rate(vat_rate_id, data, auth_context.tenant_id)


@taxes_router.post("/reconcile", response_model=ReconciledInvoiceAmounts)
def reconcile_invoice_amounts(
    data: InvoiceAmountInput,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "accountant"]))
):
    """
    Conciliar importes de factura contra el total con descuento

    Escala neto e IVA por alícuota al total final (sin tributos) y absorbe el
    residuo de redondeo en la base de la primera alícuota, de modo que
    neto + IVA + tributos coincida al centavo con el total.

    Retorna 422 si los tributos superan el total.
    """
    service = TaxService(db)
    return service.reconcile_amounts(data, auth_context.tenant_id)
