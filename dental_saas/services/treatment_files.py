from __future__ import annotations

import logging
import time
from typing import BinaryIO, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dental_saas.models.dentist import Dentist
from dental_saas.models.patient import Patient
from dental_saas.models.treatment import Treatment
from dental_saas.models.treatment_file import TreatmentFile
from dental_saas.services.object_storage import ObjectStorage, StorageError, build_treatment_file_key, sanitize_filename
from dental_saas.services.treatments import TreatmentError

logger = logging.getLogger(__name__)
FILES_PREFIX = "[TREATMENT_FILES]"


def file_to_dict(record: TreatmentFile, uploader_name: Optional[str] = None) -> dict:
    return {
        "id": record.id,
        "treatment_id": record.treatment_id,
        "file_path": record.file_path,
        "file_name": record.file_name,
        "file_size": record.file_size,
        "file_type": record.file_type,
        "uploaded_by": record.uploaded_by,
        "uploader_name": uploader_name,
        "created_at": record.created_at,
    }


def upload_treatment_file(
    db: Session,
    storage: ObjectStorage,
    treatment: Treatment,
    dentist: Dentist,
    *,
    filename: Optional[str],
    content_type: Optional[str],
    fileobj: BinaryIO,
    size: int,
) -> TreatmentFile:
    key = build_treatment_file_key(treatment.id, filename, int(time.time() * 1000))
    storage.upload(key, fileobj, content_type)

    record = TreatmentFile(
        treatment_id=treatment.id,
        file_path=key,
        file_name=sanitize_filename(filename),
        file_size=size,
        file_type=content_type,
        uploaded_by=dentist.id,
    )
    db.add(record)
    try:
        db.flush()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s metadata insert failed; removing object key=%s", FILES_PREFIX, key)
        try:
            storage.remove([key])
        except StorageError:
            logger.error("%s orphan object left in storage key=%s", FILES_PREFIX, key)
        raise
    logger.info("%s uploaded file_id=%s treatment_id=%s", FILES_PREFIX, record.id, treatment.id)
    return record


def list_treatment_files(db: Session, treatment: Treatment) -> list[dict]:
    rows = (
        db.query(TreatmentFile, Dentist.name)
        .outerjoin(Dentist, Dentist.id == TreatmentFile.uploaded_by)
        .filter(TreatmentFile.treatment_id == treatment.id)
        .order_by(TreatmentFile.created_at.desc(), TreatmentFile.id.desc())
        .all()
    )
    return [file_to_dict(record, uploader_name) for record, uploader_name in rows]


def _company_file_query(db: Session, company_id: str):
    return (
        db.query(TreatmentFile)
        .join(Treatment, Treatment.id == TreatmentFile.treatment_id)
        .join(Patient, Patient.id == Treatment.patient_id)
        .filter(Patient.company_id == company_id)
    )


def delete_treatment_file(db: Session, storage: ObjectStorage, company_id: str, file_id: int) -> None:
    record = _company_file_query(db, company_id).filter(TreatmentFile.id == file_id).first()
    if record is None:
        raise TreatmentError("Arquivo não encontrado", 404)

    try:
        storage.remove([record.file_path])
    except StorageError:
        # O registro é removido mesmo assim; o objeto fica órfão no bucket.
        logger.warning("%s storage removal failed; deleting record anyway file_id=%s", FILES_PREFIX, file_id)

    db.delete(record)
    db.flush()


def signed_url_for(db: Session, storage: ObjectStorage, company_id: str, file_path: str, expires_in: int) -> str:
    record = _company_file_query(db, company_id).filter(TreatmentFile.file_path == file_path).first()
    if record is None:
        raise TreatmentError("Arquivo não encontrado", 404)
    return storage.create_signed_url(record.file_path, expires_in)
