"""Prescription endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Body, status

from hospitalms.api.dependencies import StoreDep
from hospitalms.api.errors import APIError, unwrap
from hospitalms.api.services.collection_service import CollectionService
from hospitalms.domain.models import Prescription

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prescriptions", tags=["prescriptions"])

REQUIRED_FIELDS = ("prescription_id", "patient_id", "doctor_id", "visit_id", "drug_name")
BULK_REQUIRED_FIELDS = ("prescription_id", "patient_id", "doctor_id", "drug_name")


def _service(storage) -> CollectionService:
    return CollectionService(storage, Prescription, sort_by="prescribed_date", descending=True)


@router.get("")
@router.get("/", include_in_schema=False)
def list_prescriptions(storage: StoreDep):
    return unwrap(_service(storage).list_all(), "Error fetching prescriptions")


@router.get("/patient/{patient_id}")
def list_prescriptions_by_patient(patient_id: str, storage: StoreDep):
    return unwrap(_service(storage).list_by("patient_id", patient_id), "Error fetching patient prescriptions")


@router.get("/doctor/{doctor_id}")
def list_prescriptions_by_doctor(doctor_id: str, storage: StoreDep):
    return unwrap(_service(storage).list_by("doctor_id", doctor_id), "Error fetching doctor prescriptions")


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def bulk_create_prescriptions(storage: StoreDep, payload: Any = Body(...)):
    """Insert a non-empty array of prescriptions; all or nothing."""
    if not isinstance(payload, list) or not payload:
        raise APIError(400, "Invalid data format or empty array")

    for index, prescription in enumerate(payload):
        if not isinstance(prescription, dict):
            raise APIError(400, f"Prescription at index {index} is not an object")
        for field in BULK_REQUIRED_FIELDS:
            if not prescription.get(field):
                raise APIError(
                    400,
                    f"Prescription at index {index} missing required field: {field}",
                    prescription=prescription,
                )

    created = unwrap(
        _service(storage).create_many(payload),
        "Bulk insert failed",
        duplicate_message="Duplicate prescription_id found. Prescription IDs must be unique.",
    )
    logger.info(f"Saved {len(created)} prescriptions")
    return {
        "message": f"{len(created)} prescriptions saved successfully",
        "count": len(created),
        "prescriptions": created,
    }


@router.get("/{prescription_id}")
def get_prescription(prescription_id: str, storage: StoreDep):
    prescription = unwrap(_service(storage).get(prescription_id), "Error fetching prescription")
    if prescription is None:
        raise APIError(404, "Prescription not found")
    return prescription


@router.post("", status_code=status.HTTP_201_CREATED)
@router.post("/", status_code=status.HTTP_201_CREATED, include_in_schema=False)
def create_prescription(storage: StoreDep, payload: dict = Body(...)):
    for field in REQUIRED_FIELDS:
        if not payload.get(field):
            raise APIError(400, f"Missing required field: {field}")
    prescription = unwrap(
        _service(storage).create(payload),
        "Error saving prescription",
        duplicate_message="Prescription ID already exists",
    )
    return {"message": "Prescription saved successfully", "prescription": prescription}


@router.put("/{prescription_id}")
def update_prescription(prescription_id: str, storage: StoreDep, changes: dict = Body(...)):
    prescription = unwrap(_service(storage).update(prescription_id, changes), "Error updating prescription")
    if prescription is None:
        raise APIError(404, "Prescription not found", prescriptionId=prescription_id)
    return {"message": "Prescription updated successfully", "prescription": prescription}


@router.delete("/{prescription_id}")
def delete_prescription(prescription_id: str, storage: StoreDep):
    prescription = unwrap(_service(storage).delete(prescription_id), "Error deleting prescription")
    if prescription is None:
        raise APIError(404, "Prescription not found", prescriptionId=prescription_id.strip())
    return {"message": "Prescription deleted successfully", "prescription": prescription}
