from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from dental_saas.core.database import get_db
from dental_saas.deps import get_current_dentist, get_identity_provider
from dental_saas.models.dentist import Dentist
from dental_saas.schemas.dentists import LoginRequest
from dental_saas.services.identity import IdentityProvider, InvalidCredentials
from dental_saas.services.practitioners import dentist_to_dict
from dental_saas.services.sessions import clear_session_cookie, set_session_cookie

router = APIRouter(prefix="/api/admin/auth", tags=["admin-auth"])
logger = logging.getLogger(__name__)


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    try:
        user, token = identity.sign_in(payload.email, payload.password)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="E-mail ou senha inválidos") from exc

    dentist = db.query(Dentist).filter(Dentist.id == user.id).first()
    if dentist is None:
        logger.warning("Login without dentist profile user_id=%s", user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Usuário sem perfil de dentista")

    set_session_cookie(response, token, request)
    logger.info("Dentist login user_id=%s company_id=%s", dentist.id, dentist.company_id)
    return {"ok": True, "dentist": dentist_to_dict(dentist)}


@router.post("/logout")
def logout(request: Request, response: Response):
    clear_session_cookie(response, request)
    return {"ok": True}


@router.get("/me")
def me(dentist: Dentist = Depends(get_current_dentist)):
    company = dentist.company
    return {
        **dentist_to_dict(dentist),
        "company": (
            {"id": company.id, "slug": company.slug, "name": company.name, "is_active": company.is_active}
            if company is not None
            else None
        ),
    }
