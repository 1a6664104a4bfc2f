"""Espelho local das assinaturas do Stripe.

``resync_subscription`` é o único caminho que escreve status e períodos a
partir do Stripe: webhooks, a conclusão do checkout e o script de
reconciliação passam todos por ele.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.models.company import Company
from dental_saas.models.subscription import Subscription, SubscriptionStatus
from dental_saas.models.subscription_plan import SubscriptionPlan
from dental_saas.services.payment_gateway import PaymentGatewayError, StripeGateway
from dental_saas.services.tenant_resolver import TenantResolver
from utils.dates import add_days, from_unix

logger = logging.getLogger(__name__)
BILLING_PREFIX = "[BILLING]"
DEFAULT_PERIOD_DAYS = 30


def stripe_value(obj: Any, *path: Any, default: Any = None) -> Any:
    """Navega por chaves/índices de um recurso do Stripe sem levantar erro."""
    current = obj
    for key in path:
        if current is None:
            return default
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return default
    return default if current is None else current


def object_id(value: Any) -> Optional[str]:
    """Campos como ``subscription`` e ``customer`` vêm como id ou como objeto expandido."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return stripe_value(value, "id")


def remote_quantity(remote: Any) -> Optional[int]:
    quantity = stripe_value(remote, "items", "data", 0, "quantity")
    return int(quantity) if quantity is not None else None


def remote_dentist_count(remote: Any) -> int:
    raw = stripe_value(remote, "metadata", "dentist_count")
    try:
        count = int(raw) if raw is not None else 0
    except (TypeError, ValueError):
        count = 0
    return count or remote_quantity(remote) or 1


def period_bounds(remote: Any):
    """Início e fim do período corrente.

    Versões recentes da API movem os períodos para os itens da assinatura;
    sem nenhum dos dois, assume-se ``start_date`` + 30 dias.
    """
    start = stripe_value(remote, "current_period_start") or stripe_value(
        remote, "items", "data", 0, "current_period_start"
    )
    end = stripe_value(remote, "current_period_end") or stripe_value(
        remote, "items", "data", 0, "current_period_end"
    )
    if start and end:
        return from_unix(start), from_unix(end)

    start_date = from_unix(stripe_value(remote, "start_date"))
    if start_date is None:
        return None, None
    return start_date, add_days(start_date, DEFAULT_PERIOD_DAYS)


def normalize_status(raw: Any) -> Optional[str]:
    try:
        return SubscriptionStatus(str(raw)).value
    except ValueError:
        logger.warning("%s unknown subscription status=%s", BILLING_PREFIX, raw)
        return None


def find_plan_for(db: Session, remote: Any) -> Optional[SubscriptionPlan]:
    price_id = stripe_value(remote, "items", "data", 0, "price", "id")
    if not price_id:
        return None
    return db.query(SubscriptionPlan).filter(SubscriptionPlan.stripe_price_id == price_id).first()


def apply_remote_state(mirror: Subscription, remote: Any) -> Subscription:
    status = normalize_status(stripe_value(remote, "status"))
    if status is not None:
        mirror.status = status
    mirror.current_period_start, mirror.current_period_end = period_bounds(remote)
    mirror.trial_end = from_unix(stripe_value(remote, "trial_end"))
    return mirror


def build_mirror(db: Session, remote: Any, company_id: str) -> Subscription:
    plan = find_plan_for(db, remote)
    mirror = Subscription(
        id=stripe_value(remote, "id"),
        company_id=company_id,
        plan_id=plan.id if plan else None,
        status=normalize_status(stripe_value(remote, "status")) or SubscriptionStatus.INCOMPLETE.value,
    )
    return apply_remote_state(mirror, remote)


def get_mirror(db: Session, subscription_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.id == subscription_id).first()


def latest_subscription_for_company(db: Session, company_id: str) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.company_id == company_id)
        .order_by(Subscription.created_at.desc())
        .first()
    )


def resync_subscription(db: Session, gateway: StripeGateway, subscription_id: str) -> Optional[Subscription]:
    """Sobrescreve o espelho local com o estado atual do Stripe.

    Se o espelho ainda não existe e o metadata remoto aponta para uma clínica
    conhecida, o espelho é criado; caso contrário o evento é ignorado.
    """
    remote = gateway.retrieve_subscription(subscription_id, expand=["customer", "latest_invoice"])
    mirror = get_mirror(db, subscription_id)

    if mirror is None:
        company = TenantResolver.resolve_id(db, stripe_value(remote, "metadata", "company_id"))
        if company is None:
            logger.info(
                "%s resync skipped: no local mirror and no known company subscription_id=%s",
                BILLING_PREFIX,
                subscription_id,
            )
            return None
        mirror = build_mirror(db, remote, company.id)
        db.add(mirror)
        logger.info(
            "%s mirror materialized subscription_id=%s company_id=%s",
            BILLING_PREFIX,
            subscription_id,
            company.id,
        )
    else:
        apply_remote_state(mirror, remote)

    db.flush()
    logger.info("%s resynced subscription_id=%s status=%s", BILLING_PREFIX, subscription_id, mirror.status)
    return mirror


def _company_for(db: Session, remote: Any) -> Optional[Company]:
    company = TenantResolver.resolve_id(db, stripe_value(remote, "metadata", "company_id"))
    if company is not None:
        return company
    mirror = get_mirror(db, stripe_value(remote, "id"))
    return TenantResolver.resolve_id(db, mirror.company_id) if mirror else None


def _log_past_due(db: Session, remote: Any) -> None:
    logger.warning("%s subscription past due subscription_id=%s", BILLING_PREFIX, stripe_value(remote, "id"))


def _set_company_active(active: bool) -> Callable[[Session, Any], None]:
    def _effect(db: Session, remote: Any) -> None:
        company = _company_for(db, remote)
        if company is None:
            logger.warning(
                "%s company not found for subscription_id=%s", BILLING_PREFIX, stripe_value(remote, "id")
            )
            return
        company.is_active = active
        logger.info("%s company_id=%s is_active=%s", BILLING_PREFIX, company.id, active)

    return _effect


# (status anterior, novo status) -> efeito. ``None`` casa com qualquer anterior.
STATUS_SIDE_EFFECTS: list[tuple[Optional[str], str, Callable[[Session, Any], None]]] = [
    (None, SubscriptionStatus.PAST_DUE.value, _log_past_due),
    (None, SubscriptionStatus.CANCELED.value, _set_company_active(False)),
    (SubscriptionStatus.PAST_DUE.value, SubscriptionStatus.ACTIVE.value, _set_company_active(True)),
]


def apply_status_side_effects(db: Session, previous_status: Optional[str], remote: Any) -> int:
    new_status = stripe_value(remote, "status")
    applied = 0
    for expected_previous, expected_new, effect in STATUS_SIDE_EFFECTS:
        if expected_new != new_status:
            continue
        if expected_previous is not None and expected_previous != previous_status:
            continue
        effect(db, remote)
        applied += 1
    return applied


def propagate_quantity_change(gateway: StripeGateway, remote: Any, previous_attributes: Any) -> bool:
    previous_quantity = stripe_value(previous_attributes, "items", "data", 0, "quantity")
    new_quantity = remote_quantity(remote)
    if previous_quantity is None or new_quantity is None or int(previous_quantity) == new_quantity:
        return False
    gateway.update_subscription(
        stripe_value(remote, "id"),
        {"metadata": {"dentist_count": str(new_quantity)}},
    )
    logger.info(
        "%s dentist_count updated subscription_id=%s quantity=%s",
        BILLING_PREFIX,
        stripe_value(remote, "id"),
        new_quantity,
    )
    return True


def mark_canceled(db: Session, subscription_id: str) -> Optional[Subscription]:
    mirror = get_mirror(db, subscription_id)
    if mirror is None:
        logger.info("%s cancel skipped: unknown subscription_id=%s", BILLING_PREFIX, subscription_id)
        return None
    mirror.status = SubscriptionStatus.CANCELED.value
    db.flush()
    return mirror


def subscription_details(db: Session, gateway: StripeGateway, company_id: str) -> Optional[dict]:
    mirror = latest_subscription_for_company(db, company_id)
    if mirror is None:
        return None

    plan = None
    if mirror.plan_id is not None:
        plan = db.query(SubscriptionPlan).filter(SubscriptionPlan.id == mirror.plan_id).first()

    remote = gateway.retrieve_subscription(mirror.id, expand=["customer", "default_payment_method", "latest_invoice"])
    invoices = gateway.list_invoices(mirror.id)
    if plan is None:
        plan = find_plan_for(db, remote)

    return {
        "id": mirror.id,
        "status": mirror.status,
        "plan_name": plan.name if plan else None,
        "price_per_dentist": plan.price_per_dentist / 100 if plan else None,
        "current_period_start": mirror.current_period_start,
        "current_period_end": mirror.current_period_end,
        "next_invoice_date": mirror.current_period_end,
        "trial_end": mirror.trial_end,
        "dentist_count": remote_dentist_count(remote),
        "invoices": [
            {
                "id": stripe_value(invoice, "id"),
                "status": stripe_value(invoice, "status"),
                "amount_due": stripe_value(invoice, "amount_due"),
                "created": from_unix(stripe_value(invoice, "created")),
                "hosted_invoice_url": stripe_value(invoice, "hosted_invoice_url"),
            }
            for invoice in (stripe_value(invoices, "data") or [])
        ],
    }


def create_portal_url(db: Session, gateway: StripeGateway, company_id: str, return_url: str) -> Optional[str]:
    mirror = latest_subscription_for_company(db, company_id)
    if mirror is None:
        return None
    remote = gateway.retrieve_subscription(mirror.id)
    customer_id = object_id(stripe_value(remote, "customer"))
    session = gateway.create_portal_session(customer_id, return_url)
    return stripe_value(session, "url")


def tax_inclusive_price(gateway: StripeGateway, price_id: str, customer_id: str) -> dict:
    calculation = gateway.calculate_tax(price_id, customer_id)
    price = gateway.retrieve_price(price_id)

    percentage = stripe_value(calculation, "tax_breakdown", 0, "tax_rate_details", "percentage_decimal") or 0
    tax_rate = float(percentage) / 100
    amount = int(stripe_value(price, "unit_amount") or 0)
    tax_amount = round(amount * tax_rate)
    return {
        "price_id": price_id,
        "unit_amount": amount,
        "tax_amount": tax_amount,
        "total_amount": amount + tax_amount,
        "tax_rate": tax_rate * 100,
    }


def reconcile_subscriptions(db: Session, gateway: StripeGateway, status: str = "all") -> dict:
    """Passa cada assinatura do Stripe pelo resync, confirmando uma a uma.

    Recupera espelhos que o checkout não chegou a gravar. Uma falha em uma
    assinatura é registrada e a varredura segue para a próxima.
    """
    summary = {"synced": 0, "skipped": 0, "failed": 0}
    for remote in gateway.iter_subscriptions(status=status):
        subscription_id = stripe_value(remote, "id")
        try:
            mirror = resync_subscription(db, gateway, subscription_id)
            db.commit()
        except (PaymentGatewayError, SQLAlchemyError):
            db.rollback()
            logger.exception("%s reconcile failed subscription_id=%s", BILLING_PREFIX, subscription_id)
            summary["failed"] += 1
            continue
        summary["synced" if mirror is not None else "skipped"] += 1
    logger.info("%s reconcile finished %s", BILLING_PREFIX, summary)
    return summary
