from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.core.request_context import set_request_context
from dental_saas.models.dentist import Dentist
from dental_saas.services.identity import IdentityProvider
from dental_saas.services.object_storage import ObjectStorage
from dental_saas.services.payment_gateway import StripeGateway
from dental_saas.services.postal_code import PostalCodeClient
from dental_saas.services.sessions import extract_session_token

logger = logging.getLogger(__name__)


# Fábricas injetáveis: os testes trocam por fakes via app.dependency_overrides.
def get_identity_provider(db: Session = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)


def get_payment_gateway() -> StripeGateway:
    return StripeGateway()


def get_object_storage() -> ObjectStorage:
    return ObjectStorage()


def get_postal_code_client() -> PostalCodeClient:
    return PostalCodeClient()


def _log_access_denied(*, reason: str, dentist: Dentist, request: Request) -> None:
    logger.warning(
        "Access denied (%s): user_id=%s company_id=%s is_admin=%s endpoint=%s",
        reason,
        getattr(dentist, "id", None),
        getattr(dentist, "company_id", None),
        getattr(dentist, "is_admin", None),
        f"{request.method} {request.url.path}",
    )


def get_current_dentist(
    request: Request,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Dentist:
    """Resolve o dentista logado a partir do cookie de sessão (ou Bearer)."""
    token = extract_session_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")

    user = identity.get_current_user(token)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sessão inválida ou expirada")

    dentist = db.query(Dentist).filter(Dentist.id == user.id).first()
    if dentist is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Dentista não encontrado")

    request.state.dentist = dentist
    set_request_context(company_id=dentist.company_id, user_id=dentist.id)
    return dentist


def require_admin(
    request: Request,
    dentist: Dentist = Depends(get_current_dentist),
) -> Dentist:
    if not dentist.is_admin:
        _log_access_denied(reason="not_admin", dentist=dentist, request=request)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permissão negada. Apenas administradores podem executar esta ação.",
        )
    return dentist
