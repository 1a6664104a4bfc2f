from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.deps import get_payment_gateway
from dental_saas.services.payment_gateway import InvalidWebhookSignature, StripeGateway
from dental_saas.services.stripe_webhooks import WEBHOOK_PREFIX, handle_event
from dental_saas.services.subscriptions import stripe_value

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    if not signature:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Missing signature"})

    # Nada toca o banco antes da verificação da assinatura.
    try:
        event = gateway.construct_event(payload, signature)
    except InvalidWebhookSignature:
        logger.warning("%s invalid signature", WEBHOOK_PREFIX)
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid signature"})

    event_id = stripe_value(event, "id")
    try:
        outcome = handle_event(db, gateway, event)
        db.commit()
    except IntegrityError:
        # Entrega concorrente do mesmo evento gravou primeiro.
        db.rollback()
        logger.info("%s concurrent duplicate event_id=%s", WEBHOOK_PREFIX, event_id)
        return {"received": True, "duplicate": True}
    except Exception:
        db.rollback()
        logger.exception(
            "%s processing failed",
            WEBHOOK_PREFIX,
            extra={"event_id": event_id, "event_type": stripe_value(event, "type")},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook processing failed"},
        )

    return {"received": True, "outcome": outcome}
