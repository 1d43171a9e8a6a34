"""Shared fixtures for the hospitalms test suite."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from hospitalms.adapters.storage.duckdb_adapter import DuckDBDocumentStore
from hospitalms.domain.store import HospitalStore
from hospitalms.domain.validation import KnownIds

FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


PATIENT_HEADER = (
    "patient_id,full_name,age,gender,blood_group,phone_number,email,emergency_contact,"
    "hospital_location,bmi,smoker_status,alcohol_use,chronic_conditions,registration_date,insurance_type"
)
VISIT_HEADER = (
    "visit_id,patient_id,doctor_id,visit_date,severity_score,visit_type,length_of_stay,"
    "lab_result_glucose,lab_result_bp,previous_visit_gap_days,readmitted_30_days,visit_cost"
)
PRESCRIPTION_HEADER = (
    "prescription_id,visit_id,patient_id,doctor_id,diagnosis_id,diagnosis_description,drug_name,"
    "drug_category,dosage,quantity,days_supply,prescribed_date,cost"
)


def patient_line(patient_id="PAT00001", name="Asha Rao", age="34", conditions="None"):
    return (
        f"{patient_id},{name},{age},Female,B+,9876543210,asha@example.com,9123456780,"
        f"City Clinic,24.1,false,false,{conditions},2024-01-10,Premium"
    )


def visit_line(visit_id="VIS00001", patient_id="PAT00001", doctor_id="DOC001", severity="3"):
    return f"{visit_id},{patient_id},{doctor_id},2024-02-01,{severity},OP,0,98.5,120/80,30,false,250.0"


def prescription_line(prescription_id="PRE00001", visit_id="VIS00001", patient_id="PAT00001", doctor_id="DOC001"):
    return (
        f"{prescription_id},{visit_id},{patient_id},{doctor_id},D01,Hypertension,Amlodipine,"
        f"Cardio,5mg,30,30,2024-02-01,12.5"
    )


def patient_doc(patient_id="PAT00001", **overrides):
    doc = {
        "patient_id": patient_id,
        "full_name": "Asha Rao",
        "age": 34,
        "gender": "Female",
        "registration_date": "2024-01-10",
    }
    doc.update(overrides)
    return doc


def visit_doc(visit_id="VIS00001", patient_id="PAT00001", doctor_id="DOC001", **overrides):
    doc = {
        "visit_id": visit_id,
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "visit_date": "2024-02-01",
        "severity_score": 3,
    }
    doc.update(overrides)
    return doc


def prescription_doc(prescription_id="PRE00001", **overrides):
    doc = {
        "prescription_id": prescription_id,
        "visit_id": "VIS00001",
        "patient_id": "PAT00001",
        "doctor_id": "DOC001",
        "drug_name": "Amlodipine",
        "prescribed_date": "2024-02-01",
    }
    doc.update(overrides)
    return doc


def doctor_doc(doctor_id="DOC001", **overrides):
    doc = {
        "doctor_id": doctor_id,
        "doctor_name": "Dr. Mehta",
        "user_id": f"user_{doctor_id.lower()}",
        "password": "secret",
        "doctor_speciality": "Cardiology",
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def known_ids():
    """Snapshot with one patient, two doctors and one visit per doctor."""
    return KnownIds.of(
        patients=["PAT00001", "PAT00002"],
        doctors=["DOC001", "DOC002"],
        visits=["VIS00001", "VIS00002"],
        prescriptions=["PRE00009"],
    )


@pytest.fixture
def session_store():
    """Session store mirroring a small hospital."""
    store = HospitalStore()
    store.replace("patients", [patient_doc("PAT00001"), patient_doc("PAT00002", full_name="Ravi Kumar")])
    store.replace("doctors", [doctor_doc("DOC001"), doctor_doc("DOC002", doctor_speciality="Neurology")])
    store.replace("visits", [visit_doc("VIS00001"), visit_doc("VIS00002", doctor_id="DOC002")])
    return store


@pytest.fixture
def document_store():
    """Fresh in-memory DuckDB document store."""
    store = DuckDBDocumentStore(db_path=":memory:")
    result = store.initialize_schema()
    assert result.is_success()
    yield store
    store.close()


@pytest.fixture
def api_client(document_store):
    """Test client whose routes use the in-memory document store."""
    from hospitalms.api.dependencies import get_document_store
    from hospitalms.api.main import app

    app.dependency_overrides[get_document_store] = lambda: document_store
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
