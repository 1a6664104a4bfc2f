from __future__ import annotations

import logging
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from dental_saas.core.metrics import request_metrics
from dental_saas.models.processed_webhook_event import ProcessedWebhookEvent
from dental_saas.services.payment_gateway import StripeGateway
from dental_saas.services.subscriptions import (
    apply_status_side_effects,
    mark_canceled,
    object_id,
    propagate_quantity_change,
    resync_subscription,
    stripe_value,
)

logger = logging.getLogger(__name__)
WEBHOOK_PREFIX = "[STRIPE_WEBHOOK]"

OUTCOME_PROCESSED = "processed"
OUTCOME_IGNORED = "ignored"
OUTCOME_DUPLICATE = "duplicate"

EventHandler = Callable[[Session, StripeGateway, Any, Any], None]


def _checkout_completed(db: Session, gateway: StripeGateway, session: Any, _previous: Any) -> None:
    subscription_id = object_id(stripe_value(session, "subscription"))
    if stripe_value(session, "mode") == "subscription" and subscription_id:
        resync_subscription(db, gateway, subscription_id)


def _subscription_created(db: Session, gateway: StripeGateway, subscription: Any, _previous: Any) -> None:
    resync_subscription(db, gateway, stripe_value(subscription, "id"))


def _subscription_updated(db: Session, gateway: StripeGateway, subscription: Any, previous: Any) -> None:
    previous_status = stripe_value(previous, "status")
    if previous_status is not None and previous_status != stripe_value(subscription, "status"):
        apply_status_side_effects(db, previous_status, subscription)
    propagate_quantity_change(gateway, subscription, previous)
    resync_subscription(db, gateway, stripe_value(subscription, "id"))


def _subscription_deleted(db: Session, _gateway: StripeGateway, subscription: Any, _previous: Any) -> None:
    mark_canceled(db, stripe_value(subscription, "id"))


def _invoice_subscription_id(invoice: Any) -> str | None:
    return object_id(stripe_value(invoice, "subscription")) or object_id(
        stripe_value(invoice, "parent", "subscription_details", "subscription")
    )


def _invoice_paid_or_failed(db: Session, gateway: StripeGateway, invoice: Any, _previous: Any) -> None:
    subscription_id = _invoice_subscription_id(invoice)
    if subscription_id:
        resync_subscription(db, gateway, subscription_id)


EVENT_HANDLERS: Dict[str, EventHandler] = {
    "checkout.session.completed": _checkout_completed,
    "customer.subscription.created": _subscription_created,
    "customer.subscription.updated": _subscription_updated,
    "customer.subscription.deleted": _subscription_deleted,
    "invoice.payment_succeeded": _invoice_paid_or_failed,
    "invoice.payment_failed": _invoice_paid_or_failed,
}


def already_processed(db: Session, event_id: str) -> bool:
    return (
        db.query(ProcessedWebhookEvent.event_id)
        .filter(ProcessedWebhookEvent.event_id == event_id)
        .first()
        is not None
    )


def handle_event(db: Session, gateway: StripeGateway, event: Any) -> str:
    """Processa um evento já verificado. O chamador faz o commit.

    O evento só é registrado como processado depois que o handler termina,
    para que uma falha deixe o Stripe reenviá-lo.
    """
    event_id = stripe_value(event, "id")
    event_type = stripe_value(event, "type")
    log_extra = {"event_id": event_id, "event_type": event_type}

    if event_id and already_processed(db, event_id):
        logger.info("%s duplicate event ignored", WEBHOOK_PREFIX, extra=log_extra)
        request_metrics.observe_webhook(event_type, OUTCOME_DUPLICATE)
        return OUTCOME_DUPLICATE

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("%s unhandled event type", WEBHOOK_PREFIX, extra=log_extra)
        outcome = OUTCOME_IGNORED
    else:
        handler(
            db,
            gateway,
            stripe_value(event, "data", "object"),
            stripe_value(event, "data", "previous_attributes", default={}),
        )
        outcome = OUTCOME_PROCESSED
        logger.info("%s event processed", WEBHOOK_PREFIX, extra=log_extra)

    if event_id:
        db.add(ProcessedWebhookEvent(event_id=event_id, event_type=event_type))
        db.flush()
    request_metrics.observe_webhook(event_type, outcome)
    return outcome
