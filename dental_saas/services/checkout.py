from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.models.company import Company
from dental_saas.models.dentist import Dentist
from dental_saas.models.subscription_plan import SubscriptionPlan
from dental_saas.services.identity import EmailAlreadyRegistered, IdentityProvider
from dental_saas.services.payment_gateway import StripeGateway
from dental_saas.services.subscriptions import build_mirror, get_mirror, object_id, stripe_value
from dental_saas.services.tenant_resolver import TenantResolver
from utils.slug import SLUG_MAX_LENGTH, normalize_slug

logger = logging.getLogger(__name__)
CHECKOUT_PREFIX = "[CHECKOUT]"
PENDING_COMPANY_ID = "pending"
# "-" seguido do epoch em milissegundos (13 dígitos).
SLUG_SUFFIX_LENGTH = 14


class CheckoutError(Exception):
    pass


class PaymentNotCompleted(CheckoutError):
    pass


@dataclass
class AccountData:
    email: str
    password: str
    name: str


@dataclass
class CompanyData:
    name: str
    slug: str
    display_name: Optional[str] = None
    subtitle: Optional[str] = None


def create_checkout_session(
    gateway: StripeGateway,
    *,
    origin: str,
    customer_email: str,
    customer_name: str,
    price_id: str,
    dentist_count: int,
    company_id: Optional[str] = None,
    company_name: Optional[str] = None,
) -> Any:
    metadata = {
        "company_id": company_id or PENDING_COMPANY_ID,
        "company_name": company_name or customer_name,
        "dentist_count": str(dentist_count),
    }
    origin = origin.rstrip("/")
    params = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "customer_email": customer_email,
        "line_items": [{"price": price_id, "quantity": dentist_count}],
        "success_url": f"{origin}/subscription/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{origin}/subscription?canceled=true",
        "allow_promotion_codes": False,
        "metadata": {**metadata, "customer_email": customer_email, "customer_name": customer_name},
        "subscription_data": {"metadata": metadata},
    }
    session = gateway.create_checkout_session(params)
    logger.info("%s session created session_id=%s", CHECKOUT_PREFIX, stripe_value(session, "id"))
    return session


def _create_or_reuse_account(identity: IdentityProvider, account: AccountData):
    try:
        return identity.admin_create_user(account.email, account.password)
    except EmailAlreadyRegistered:
        existing = identity.find_user_by_email(account.email)
        if existing is None:
            raise CheckoutError("Usuário existente não pôde ser recuperado")
        identity.admin_update_user(existing.id, password=account.password)
        logger.info("%s reusing existing account user_id=%s", CHECKOUT_PREFIX, existing.id)
        return existing


def _suffixed_slug(slug: str) -> str:
    base = normalize_slug(slug)[: SLUG_MAX_LENGTH - SLUG_SUFFIX_LENGTH].strip("-")
    return f"{base}-{int(time.time() * 1000)}"


def _unique_slug(db: Session, slug: str) -> str:
    normalized = TenantResolver.normalize(slug)
    if TenantResolver.slug_exists(db, normalized):
        return _suffixed_slug(normalized)
    return normalized


def _create_company(db: Session, company: CompanyData) -> Company:
    record = Company(
        name=company.name.strip(),
        slug=_unique_slug(db, company.slug),
        display_name=company.display_name or None,
        subtitle=company.subtitle or None,
        is_active=True,
    )
    db.add(record)
    try:
        with db.begin_nested():
            db.flush()
    except IntegrityError:
        # Outro checkout criou o mesmo slug entre a checagem e o insert.
        record.slug = _suffixed_slug(company.slug)
        db.add(record)
        db.flush()
    logger.info("%s company created company_id=%s slug=%s", CHECKOUT_PREFIX, record.id, record.slug)
    return record


def _upsert_admin_dentist(db: Session, user, account: AccountData, company: Company) -> Dentist:
    dentist = db.query(Dentist).filter(Dentist.id == user.id).first()
    if dentist is None:
        dentist = Dentist(id=user.id)
        db.add(dentist)
    dentist.name = account.name.strip()
    dentist.email = user.email
    dentist.is_admin = True
    dentist.company_id = company.id
    db.flush()
    return dentist


def _insert_mirror(db: Session, subscription: Any, company: Company, plan_id: Optional[int]) -> None:
    subscription_id = stripe_value(subscription, "id")
    if get_mirror(db, subscription_id) is not None:
        logger.info("%s mirror already exists subscription_id=%s", CHECKOUT_PREFIX, subscription_id)
        return
    try:
        with db.begin_nested():
            mirror = build_mirror(db, subscription, company.id)
            if plan_id is not None:
                mirror.plan_id = plan_id
            db.add(mirror)
            db.flush()
    except SQLAlchemyError:
        # O pagamento já foi feito; o script de reconciliação recupera o espelho.
        logger.exception("%s mirror insert failed subscription_id=%s", CHECKOUT_PREFIX, subscription_id)


def _resolve_plan_id(db: Session, selected_plan_id: Optional[int]) -> Optional[int]:
    if selected_plan_id is None:
        return None
    plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == selected_plan_id).first()
    return plan.id if plan else None


def complete_checkout(
    db: Session,
    gateway: StripeGateway,
    identity: IdentityProvider,
    *,
    session_id: str,
    account: AccountData,
    company_data: CompanyData,
    selected_plan_id: Optional[int],
    dentist_count: int,
) -> dict:
    """Materializa conta, clínica, dentista admin e espelho após um checkout pago.

    Não há rollback compensatório: passos já confirmados permanecem se um
    passo posterior falhar.
    """
    session = gateway.retrieve_checkout_session(session_id, expand=["subscription", "customer"])
    if stripe_value(session, "payment_status") != "paid":
        raise PaymentNotCompleted("Payment not completed")

    subscription = stripe_value(session, "subscription")
    if not object_id(subscription):
        raise CheckoutError("Subscription not found in session")
    if isinstance(subscription, str):
        subscription = gateway.retrieve_subscription(subscription)

    user = _create_or_reuse_account(identity, account)
    company = _create_company(db, company_data)
    dentist = _upsert_admin_dentist(db, user, account, company)
    db.commit()

    _insert_mirror(db, subscription, company, _resolve_plan_id(db, selected_plan_id))
    db.commit()

    subscription_id = stripe_value(subscription, "id")
    ids = {"user_id": user.id, "company_id": company.id, "dentist_id": dentist.id}
    customer_id = object_id(stripe_value(session, "customer"))
    if customer_id:
        gateway.update_customer(customer_id, {"metadata": ids})
    gateway.update_subscription(
        subscription_id,
        {"metadata": {**ids, "dentist_count": str(dentist_count or 1)}},
    )
    logger.info(
        "%s completed subscription_id=%s company_id=%s",
        CHECKOUT_PREFIX,
        subscription_id,
        company.id,
    )

    return {
        "success": True,
        "user": {"id": user.id, "email": user.email},
        "company": {"id": company.id, "name": company.name, "slug": company.slug},
        "dentist": {"id": dentist.id, "name": dentist.name},
        "subscription": {"id": subscription_id, "status": stripe_value(subscription, "status")},
    }
