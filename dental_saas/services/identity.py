"""Provedor de identidade local: contas de login e tokens de sessão.

Os fluxos de dentistas e de assinatura dependem apenas dos métodos desta
classe, de modo que um provedor gerenciado externo pode substituí-la via
``dental_saas.deps.get_identity_provider``.
"""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dental_saas.models.auth_user import AuthUser
from dental_saas.services.passwords import hash_password, verify_password
from dental_saas.services.sessions import create_session, decode_session

logger = logging.getLogger(__name__)
AUTH_PREFIX = "[IDENTITY]"


class IdentityError(Exception):
    pass


class EmailAlreadyRegistered(IdentityError):
    pass


class InvalidCredentials(IdentityError):
    pass


class UserNotFound(IdentityError):
    pass


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityProvider:
    def __init__(self, db: Session):
        self.db = db

    def find_user_by_email(self, email: str) -> Optional[AuthUser]:
        return self.db.query(AuthUser).filter(AuthUser.email == _normalize_email(email)).first()

    def get_user(self, user_id: str) -> Optional[AuthUser]:
        return self.db.query(AuthUser).filter(AuthUser.id == str(user_id)).first()

    def get_current_user(self, token: str | None) -> Optional[AuthUser]:
        if not token:
            return None
        payload = decode_session(token)
        if not payload or not payload.get("user_id"):
            return None
        return self.get_user(payload["user_id"])

    def sign_in(self, email: str, password: str) -> Tuple[AuthUser, str]:
        user = self.find_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("%s sign-in rejected email=%s", AUTH_PREFIX, _normalize_email(email))
            raise InvalidCredentials("Credenciais inválidas")
        return user, self.issue_token(user)

    def issue_token(self, user: AuthUser) -> str:
        return create_session({"user_id": user.id, "email": user.email})

    def admin_create_user(self, email: str, password: str) -> AuthUser:
        normalized = _normalize_email(email)
        if self.find_user_by_email(normalized):
            raise EmailAlreadyRegistered(normalized)

        user = AuthUser(email=normalized, password_hash=hash_password(password), email_confirmed=True)
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise EmailAlreadyRegistered(normalized) from exc

        logger.info("%s user created user_id=%s", AUTH_PREFIX, user.id)
        return user

    def admin_update_user(
        self,
        user_id: str,
        *,
        password: str | None = None,
        email: str | None = None,
    ) -> AuthUser:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFound(str(user_id))
        if password:
            user.password_hash = hash_password(password)
        if email:
            user.email = _normalize_email(email)
        self.db.flush()
        return user

    def admin_delete_user(self, user_id: str) -> None:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFound(str(user_id))
        self.db.delete(user)
        self.db.flush()
        logger.info("%s user deleted user_id=%s", AUTH_PREFIX, user_id)
