from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from dental_saas.models.company import Company
from utils.slug import validate_company_slug

logger = logging.getLogger(__name__)


class TenantResolver:
    """Resolve a clínica (tenant) a partir do slug público da URL."""

    @staticmethod
    def normalize(slug: str | None) -> str:
        return (slug or "").strip().lower()

    @classmethod
    def resolve_slug(cls, db: Session, slug: str | None) -> Optional[Company]:
        normalized = cls.normalize(slug)
        if not normalized:
            return None
        if not validate_company_slug(normalized):
            logger.info("Tenant resolution rejected malformed slug=%s", normalized)
            return None
        return db.query(Company).filter(Company.slug == normalized).first()

    @classmethod
    def slug_exists(cls, db: Session, slug: str) -> bool:
        return (
            db.query(Company.id).filter(Company.slug == cls.normalize(slug)).first()
            is not None
        )

    @staticmethod
    def resolve_id(db: Session, company_id: str | None) -> Optional[Company]:
        if not company_id:
            return None
        return db.query(Company).filter(Company.id == str(company_id)).first()
