"""Adaptador do Stripe usado pelos fluxos de assinatura.

Todos os objetos retornados são os recursos do SDK (mapeamentos), lidos com
acesso por chave. Erros do SDK são convertidos em ``PaymentGatewayError`` e
falhas de assinatura do webhook em ``InvalidWebhookSignature``.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

import stripe

from dental_saas.core.config import (
    STRIPE_API_VERSION,
    STRIPE_PORTAL_CONFIGURATION_ID,
    STRIPE_SECRET_KEY,
    STRIPE_TAX_CURRENCY,
    STRIPE_WEBHOOK_SECRET,
)

logger = logging.getLogger(__name__)
STRIPE_PREFIX = "[STRIPE]"


class PaymentGatewayError(Exception):
    pass


class InvalidWebhookSignature(PaymentGatewayError):
    pass


class StripeGateway:
    def __init__(
        self,
        api_key: str = STRIPE_SECRET_KEY,
        webhook_secret: str = STRIPE_WEBHOOK_SECRET,
        portal_configuration_id: Optional[str] = STRIPE_PORTAL_CONFIGURATION_ID,
        client: Optional[stripe.StripeClient] = None,
    ):
        self.webhook_secret = webhook_secret
        self.portal_configuration_id = portal_configuration_id
        self._api_key = api_key
        self._client = client

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            if not self._api_key:
                raise PaymentGatewayError("STRIPE_SECRET_KEY não configurado.")
            kwargs = {"stripe_version": STRIPE_API_VERSION} if STRIPE_API_VERSION else {}
            self._client = stripe.StripeClient(self._api_key, **kwargs)
        return self._client

    def _call(self, operation: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except stripe.StripeError as exc:
            logger.error("%s %s failed: %s", STRIPE_PREFIX, operation, exc)
            raise PaymentGatewayError(f"{operation}: {exc.user_message or exc}") from exc

    # Webhooks

    def construct_event(self, payload: bytes, signature: str):
        if not self.webhook_secret:
            raise PaymentGatewayError("STRIPE_WEBHOOK_SECRET não configurado.")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as exc:
            raise InvalidWebhookSignature(str(exc)) from exc

    # Checkout

    def create_checkout_session(self, params: Dict[str, Any]):
        return self._call("checkout.sessions.create", self.client.checkout.sessions.create, params=params)

    def retrieve_checkout_session(self, session_id: str, expand: Optional[list[str]] = None):
        return self._call(
            "checkout.sessions.retrieve",
            self.client.checkout.sessions.retrieve,
            session_id,
            params={"expand": expand or []},
        )

    # Assinaturas

    def retrieve_subscription(self, subscription_id: str, expand: Optional[list[str]] = None):
        return self._call(
            "subscriptions.retrieve",
            self.client.subscriptions.retrieve,
            subscription_id,
            params={"expand": expand or []},
        )

    def update_subscription(self, subscription_id: str, params: Dict[str, Any]):
        return self._call(
            "subscriptions.update",
            self.client.subscriptions.update,
            subscription_id,
            params=params,
        )

    def iter_subscriptions(self, status: str = "all") -> Iterator[Any]:
        page = self._call(
            "subscriptions.list",
            self.client.subscriptions.list,
            params={"status": status, "limit": 100},
        )
        return page.auto_paging_iter()

    # Clientes e faturamento

    def update_customer(self, customer_id: str, params: Dict[str, Any]):
        return self._call("customers.update", self.client.customers.update, customer_id, params=params)

    def create_portal_session(self, customer_id: str, return_url: str):
        params: Dict[str, Any] = {"customer": customer_id, "return_url": return_url}
        if self.portal_configuration_id:
            params["configuration"] = self.portal_configuration_id
        return self._call(
            "billing_portal.sessions.create",
            self.client.billing_portal.sessions.create,
            params=params,
        )

    def list_invoices(self, subscription_id: str, limit: int = 10):
        return self._call(
            "invoices.list",
            self.client.invoices.list,
            params={"subscription": subscription_id, "limit": limit},
        )

    def retrieve_price(self, price_id: str):
        return self._call("prices.retrieve", self.client.prices.retrieve, price_id)

    def calculate_tax(self, price_id: str, customer_id: str):
        return self._call(
            "tax.calculations.create",
            self.client.tax.calculations.create,
            params={
                "currency": STRIPE_TAX_CURRENCY,
                "customer": customer_id,
                "line_items": [{"amount": 1000, "reference": price_id, "tax_behavior": "inclusive"}],
            },
        )
