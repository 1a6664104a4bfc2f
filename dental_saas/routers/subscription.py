from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.deps import get_identity_provider, get_payment_gateway, require_admin
from dental_saas.models.dentist import Dentist
from dental_saas.schemas.subscription import CheckoutComplete, CheckoutCreate, PortalRequest, TaxRequest
from dental_saas.services.checkout import (
    AccountData,
    CheckoutError,
    CompanyData,
    PaymentNotCompleted,
    complete_checkout,
    create_checkout_session,
)
from dental_saas.services.identity import IdentityProvider
from dental_saas.services.payment_gateway import PaymentGatewayError, StripeGateway
from dental_saas.services.subscriptions import create_portal_url, stripe_value, subscription_details, tax_inclusive_price

router = APIRouter(prefix="/api/subscription", tags=["subscription"])
logger = logging.getLogger(__name__)


def _request_origin(request: Request) -> str:
    origin = request.headers.get("origin")
    if origin:
        return origin.rstrip("/")
    forwarded_host = request.headers.get("x-forwarded-host")
    if forwarded_host:
        scheme = request.headers.get("x-forwarded-proto") or request.url.scheme
        return f"{scheme}://{forwarded_host}"
    return str(request.base_url).rstrip("/")


def _gateway_failure(exc: Exception, message: str) -> HTTPException:
    logger.error("Subscription flow failed: %s", exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


@router.post("/create-checkout")
def post_create_checkout(
    payload: CheckoutCreate,
    request: Request,
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    try:
        session = create_checkout_session(
            gateway,
            origin=_request_origin(request),
            customer_email=payload.customer_email,
            customer_name=payload.customer_name,
            price_id=payload.price_id,
            dentist_count=payload.dentist_count,
            company_id=payload.company_id,
            company_name=payload.company_name,
        )
    except PaymentGatewayError as exc:
        raise _gateway_failure(exc, "Erro ao criar sessão de pagamento") from exc
    return {"session_id": stripe_value(session, "id"), "url": stripe_value(session, "url")}


@router.post("/complete")
def post_complete(
    payload: CheckoutComplete,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        return complete_checkout(
            db,
            gateway,
            identity,
            session_id=payload.session_id,
            account=AccountData(
                email=payload.account_data.email,
                password=payload.account_data.password,
                name=payload.account_data.name,
            ),
            company_data=CompanyData(
                name=payload.company_data.name,
                slug=payload.company_data.slug,
                display_name=payload.company_data.display_name,
                subtitle=payload.company_data.subtitle,
            ),
            selected_plan_id=payload.selected_plan.id if payload.selected_plan else None,
            dentist_count=payload.dentist_count,
        )
    except PaymentNotCompleted as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Pagamento não concluído") from exc
    except CheckoutError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except PaymentGatewayError as exc:
        raise _gateway_failure(exc, "Erro ao confirmar assinatura") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Checkout completion failed session_id=%s", payload.session_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao finalizar cadastro da assinatura",
        ) from exc


@router.post("/customer-portal")
def post_customer_portal(
    payload: PortalRequest,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    try:
        url = create_portal_url(db, gateway, admin.company_id, payload.return_url)
    except PaymentGatewayError as exc:
        raise _gateway_failure(exc, "Erro ao abrir portal de pagamento") from exc
    if url is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assinatura não encontrada")
    return {"url": url}


@router.get("/details")
def get_details(
    company_id: Optional[str] = None,
    admin: Dentist = Depends(require_admin),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    if company_id and company_id != admin.company_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Empresa não autorizada")
    try:
        details = subscription_details(db, gateway, admin.company_id)
    except PaymentGatewayError as exc:
        raise _gateway_failure(exc, "Erro ao buscar detalhes da assinatura") from exc
    if details is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assinatura não encontrada")
    return details


@router.post("/calculate-tax")
def post_calculate_tax(
    payload: TaxRequest,
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    try:
        return tax_inclusive_price(gateway, payload.price_id, payload.customer_id)
    except PaymentGatewayError as exc:
        raise _gateway_failure(exc, "Erro ao calcular impostos") from exc
