from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from dental_saas.deps import get_postal_code_client
from dental_saas.services.postal_code import PostalCodeClient, PostalCodeError

router = APIRouter(prefix="/api/cep", tags=["cep"])


@router.get("/{cep}")
def lookup_cep(cep: str, client: PostalCodeClient = Depends(get_postal_code_client)):
    try:
        return client.lookup(cep)
    except PostalCodeError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
