from fastapi import APIRouter, Depends, status
from uuid import UUID

from sqlalchemy.orm import Session

from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.auth.schemas import AuthContext
from app.modules.sales.service import SaleInvoiceService, build_afip_amounts_payload
from app.modules.sales.schemas import SaleCreate, SaleOut, AfipAmountsPayload

sales_router = APIRouter(prefix="/sales", tags=["Sales"])


@sales_router.post("/", response_model=SaleOut, status_code=status.HTTP_201_CREATED)
def create_sale(
    sale_data: SaleCreate,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier"]))
):
    """
    Registrar una venta con sus importes antes del descuento

    - **subtotal** / **total_iva_amount**: neto e IVA sin descuento
    - **ivas**: IVA por alícuota (porcentaje, base e importe)
    - **iibb** / **internal_tax**: tributos que no se descuentan
    - **total**: total final con descuento
    """
    service = SaleInvoiceService(db)
    return service.create_sale(sale_data, auth_context.tenant_id)


@sales_router.get("/{sale_id}", response_model=SaleOut)
def get_sale(
    sale_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant", "viewer"]))
):
    service = SaleInvoiceService(db)
    return service.get_sale(sale_id, auth_context.tenant_id)


@sales_router.post("/{sale_id}/invoice-amounts", response_model=AfipAmountsPayload)
def prepare_invoice_amounts(
    sale_id: UUID,
    db: Session = Depends(get_db),
    auth_context: AuthContext = Depends(AuthDependencies.require_role(["owner", "admin", "seller", "cashier", "accountant"]))
):
    """
    Conciliar los importes de la venta para AFIP

    Guarda neto, IVA, tributos y total conciliados en la venta y devuelve el
    fragmento de importes listo para el cliente de AFIP.

    - 404 si la venta no existe en la empresa
    - 422 si el total no es positivo o los tributos lo superan
    """
    service = SaleInvoiceService(db)
    result = service.prepare_invoice_amounts(sale_id, auth_context.tenant_id)
    return build_afip_amounts_payload(result)
