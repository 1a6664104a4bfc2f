from __future__ import annotations

from fastapi import APIRouter, Depends

from dental_saas.core.metrics import request_metrics
from dental_saas.deps import require_admin
from dental_saas.models.dentist import Dentist

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("/companies")
def company_metrics(admin: Dentist = Depends(require_admin)):
    per_company = request_metrics.snapshot_per_company()
    return {"company_id": admin.company_id, "metrics": per_company.get(admin.company_id, {})}


@router.get("/webhooks")
def webhook_metrics(_admin: Dentist = Depends(require_admin)):
    return {"events": request_metrics.snapshot_webhooks()}
