from __future__ import annotations

import logging
from typing import Optional

import httpx

from dental_saas.core.config import CEP_API_BASE_URL, HTTP_TIMEOUT_SECONDS
from utils.documents import CEP_LENGTH, only_digits

logger = logging.getLogger(__name__)


class PostalCodeError(Exception):
    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PostalCodeClient:
    """Consulta de endereço por CEP no ViaCEP."""

    def __init__(
        self,
        base_url: str = CEP_API_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def lookup(self, cep: str) -> dict:
        digits = only_digits(cep)
        if len(digits) != CEP_LENGTH:
            raise PostalCodeError("CEP inválido. Deve conter 8 dígitos.", 400)

        url = f"{self.base_url}/{digits}/json/"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.get(url)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("CEP lookup failed cep=%s error=%s", digits, exc)
            raise PostalCodeError("Erro ao buscar CEP. Tente novamente mais tarde.", 500) from exc

        if data.get("erro"):
            raise PostalCodeError("CEP não encontrado.", 404)

        return {
            "cep": only_digits(data.get("cep")) or digits,
            "street": data.get("logradouro") or "",
            "neighborhood": data.get("bairro") or "",
            "city": data.get("localidade") or "",
            "state": data.get("uf") or "",
        }
