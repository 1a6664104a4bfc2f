from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.core.config import MAX_TREATMENT_FILE_BYTES, SIGNED_URL_TTL_SECONDS
from dental_saas.core.database import get_db
from dental_saas.deps import get_current_dentist, get_object_storage
from dental_saas.models.dentist import Dentist
from dental_saas.models.treatment import TreatmentStatus
from dental_saas.schemas.common import validate_or_400
from dental_saas.schemas.treatments import (
    AnamnesisPayload,
    PaymentPayload,
    PlanningPayload,
    SignedUrlRequest,
    TreatmentCreate,
)
from dental_saas.services.object_storage import ObjectStorage, StorageError
from dental_saas.services.treatment_files import (
    delete_treatment_file,
    file_to_dict,
    list_treatment_files,
    signed_url_for,
    upload_treatment_file,
)
from dental_saas.services.treatments import (
    TreatmentError,
    anamnesis_to_dict,
    create_treatment,
    finalize_treatment,
    get_company_treatment,
    item_to_dict,
    list_treatments,
    payment_to_dict,
    save_anamnesis,
    save_payment,
    save_planning,
    treatment_aggregate,
    treatment_to_dict,
)

router = APIRouter(prefix="/api/admin/treatments", tags=["admin-treatments"])
logger = logging.getLogger(__name__)


def _treatment_error(exc: TreatmentError) -> HTTPException:
    if exc.details:
        return HTTPException(status_code=exc.status_code, detail={"error": exc.message, **exc.details})
    return HTTPException(status_code=exc.status_code, detail=exc.message)


def _load_treatment(db: Session, dentist: Dentist, treatment_id: int):
    try:
        return get_company_treatment(db, dentist.company_id, treatment_id)
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc


def _commit_or_500(db: Session, message: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Commit failed: %s", message)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message) from exc


@router.post("", status_code=status.HTTP_201_CREATED)
def post_treatment(
    payload: TreatmentCreate,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    try:
        treatment = create_treatment(
            db,
            dentist,
            patient_id=payload.patient_id,
            description=payload.description,
            dentist_id=payload.dentist_id,
        )
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao criar tratamento")
    return treatment_to_dict(treatment)


@router.get("")
def get_treatments(
    patient_id: Optional[int] = None,
    status_filter: Optional[TreatmentStatus] = Query(None, alias="status"),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    treatments = list_treatments(db, dentist.company_id, patient_id=patient_id, status=status_filter)
    return [treatment_to_dict(entry) for entry in treatments]


# Rotas de arquivo com caminho fixo ficam antes de "/{treatment_id}".
@router.delete("/files/{file_id}")
def delete_file(
    file_id: int,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    try:
        delete_treatment_file(db, storage, dentist.company_id, file_id)
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao excluir arquivo")
    return {"success": True}


@router.post("/files/signed-url")
def post_signed_url(
    payload: SignedUrlRequest,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    try:
        url = signed_url_for(db, storage, dentist.company_id, payload.file_path, SIGNED_URL_TTL_SECONDS)
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao gerar link do arquivo",
        ) from exc
    return {"signed_url": url, "expires_in": SIGNED_URL_TTL_SECONDS}


@router.get("/{treatment_id}")
def get_treatment(
    treatment_id: int,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    return treatment_aggregate(_load_treatment(db, dentist, treatment_id))


@router.post("/{treatment_id}/finalize")
def post_finalize(
    treatment_id: int,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    treatment = _load_treatment(db, dentist, treatment_id)
    try:
        finalize_treatment(db, treatment, dentist)
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao finalizar tratamento")
    return treatment_to_dict(treatment)


@router.put("/{treatment_id}/anamnesis")
def put_anamnesis(
    treatment_id: int,
    payload: Optional[dict] = Body(None),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    data = validate_or_400(AnamnesisPayload, payload)
    treatment = _load_treatment(db, dentist, treatment_id)
    try:
        anamnesis = save_anamnesis(db, treatment, dentist, data.model_dump())
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao salvar anamnese")
    return anamnesis_to_dict(anamnesis)


@router.put("/{treatment_id}/planning")
def put_planning(
    treatment_id: int,
    payload: Optional[dict] = Body(None),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    data = validate_or_400(PlanningPayload, payload)
    treatment = _load_treatment(db, dentist, treatment_id)
    try:
        items = save_planning(db, treatment, dentist, [item.model_dump() for item in data.items])
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao salvar planejamento")
    db.refresh(treatment)
    return {
        "items": [item_to_dict(item) for item in items],
        "payment": payment_to_dict(treatment.payment),
    }


@router.put("/{treatment_id}/payment")
def put_payment(
    treatment_id: int,
    payload: Optional[dict] = Body(None),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    data = validate_or_400(PaymentPayload, payload)
    treatment = _load_treatment(db, dentist, treatment_id)
    try:
        payment = save_payment(
            db,
            treatment,
            dentist,
            payment_method=data.payment_method.value,
            installments=data.installments,
            payment_date=data.payment_date,
        )
    except TreatmentError as exc:
        raise _treatment_error(exc) from exc
    _commit_or_500(db, "Erro ao salvar pagamento")
    return payment_to_dict(payment)


@router.post("/{treatment_id}/files", status_code=status.HTTP_201_CREATED)
def post_file(
    treatment_id: int,
    file: UploadFile = File(...),
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
    storage: ObjectStorage = Depends(get_object_storage),
):
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Arquivo inválido")

    treatment = _load_treatment(db, dentist, treatment_id)

    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    if size > MAX_TREATMENT_FILE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Arquivo excede {MAX_TREATMENT_FILE_BYTES // (1024 * 1024)}MB",
        )

    try:
        record = upload_treatment_file(
            db,
            storage,
            treatment,
            dentist,
            filename=file.filename,
            content_type=file.content_type,
            fileobj=file.file,
            size=size,
        )
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao enviar arquivo",
        ) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Erro ao registrar arquivo",
        ) from exc
    return file_to_dict(record, dentist.name)


@router.get("/{treatment_id}/files")
def get_files(
    treatment_id: int,
    dentist: Dentist = Depends(get_current_dentist),
    db: Session = Depends(get_db),
):
    return list_treatment_files(db, _load_treatment(db, dentist, treatment_id))
