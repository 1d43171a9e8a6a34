"""Tests for the document API.

The routes run against a real in-memory DuckDB document store injected
through ``app.dependency_overrides``.
"""

from unittest.mock import Mock

import pytest
from conftest import doctor_doc, patient_doc, prescription_doc, visit_doc
from fastapi.testclient import TestClient

from hospitalms.api.dependencies import get_document_store
from hospitalms.api.main import app
from hospitalms.api.routes.doctors import next_doctor_id
from hospitalms.domain.ports import DocumentStorePort, Result


class TestRootAndErrors:
    """Test root and errors."""

    def test_root(self, api_client):
        """Test the root endpoint."""
        response = api_client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Hospital Management API"
        assert data["status"] == "running"
        assert data["docs"] == "/api/docs"
        assert data["health"] == "/api/health"

    def test_unknown_route(self, api_client):
        """Test the JSON 404 for an unknown route."""
        response = api_client.get("/api/wards")
        assert response.status_code == 404
        assert response.json() == {"error": "Route not found: /api/wards"}

    def test_malformed_body(self, api_client):
        """Test that an unparseable body is a 400."""
        response = api_client.post("/api/patients", content="{not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid request body"

    def test_process_time_header(self, api_client):
        """Test process time header."""
        response = api_client.get("/api/patients")
        assert "X-Process-Time" in response.headers


class TestHealth:
    """Test health."""

    def test_healthy(self, api_client):
        """Test the health endpoint with a working store."""
        response = api_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"]["status"] == "connected"
        assert data["database"]["response_time_ms"] is not None

    def test_unhealthy_when_ping_fails(self):
        """Test unhealthy when ping fails."""
        storage = Mock(spec=DocumentStorePort)
        storage.ping.return_value = Result.failure_result("connection refused", error_type="StorageError")
        app.dependency_overrides[get_document_store] = lambda: storage
        try:
            with TestClient(app) as client:
                response = client.get("/api/health")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["status"] == "unhealthy"
        assert response.json()["database"]["status"] == "disconnected"

    def test_storage_failure_is_500(self):
        """Test storage failure is 500."""
        storage = Mock(spec=DocumentStorePort)
        storage.find_all.return_value = Result.failure_result("disk full", error_type="StorageError")
        app.dependency_overrides[get_document_store] = lambda: storage
        try:
            with TestClient(app) as client:
                response = client.get("/api/visits")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.json() == {"message": "Error fetching visits", "error": "disk full"}


class TestPatients:
    """Test patients."""

    def test_bulk_insert_and_list(self, api_client):
        """Test bulk insert and list."""
        response = api_client.post("/api/patients/bulk", json=[patient_doc("PAT00002"), patient_doc("PAT00001")])

        assert response.status_code == 201
        assert response.json()["message"] == "Patients created successfully"
        assert response.json()["count"] == 2
        listed = api_client.get("/api/patients").json()
        assert [p["patient_id"] for p in listed] == ["PAT00001", "PAT00002"]

    def test_bulk_duplicate_rejects_whole_batch(self, api_client):
        """Test bulk duplicate rejects whole batch."""
        api_client.post("/api/patients/bulk", json=[patient_doc("PAT00001")])

        response = api_client.post("/api/patients/bulk", json=[patient_doc("PAT00002"), patient_doc("PAT00001")])

        assert response.status_code == 400
        assert response.json()["message"] == "Duplicate patient_id found. Patient IDs must be unique."
        assert len(api_client.get("/api/patients").json()) == 1

    def test_bulk_requires_array(self, api_client):
        """Test bulk requires array."""
        response = api_client.post("/api/patients/bulk", json=patient_doc())
        assert response.status_code == 400
        assert response.json()["message"] == "Expected array of patients"

    def test_bulk_invalid_document_names_index(self, api_client):
        """Test bulk invalid document names index."""
        bad = patient_doc("PAT00002")
        del bad["registration_date"]
        response = api_client.post("/api/patients/bulk", json=[patient_doc("PAT00001"), bad])
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid document data"
        assert response.json()["index"] == 1

    def test_crud(self, api_client):
        """Test create, read, update and delete of a patient."""
        created = api_client.post("/api/patients", json=patient_doc("PAT00001"))
        assert created.status_code == 201
        assert created.json()["message"] == "Patient created"

        again = api_client.post("/api/patients/", json=patient_doc("PAT00001"))
        assert again.status_code == 400
        assert again.json()["message"] == "Patient ID already exists"

        updated = api_client.put("/api/patients/PAT00001", json={"age": 35})
        assert updated.json()["patient"]["age"] == 35

        assert api_client.get("/api/patients/PAT00001").json()["age"] == 35
        assert api_client.delete("/api/patients/PAT00001").json()["message"] == "Patient deleted"

        missing = api_client.get("/api/patients/PAT00001")
        assert missing.status_code == 404
        assert missing.json()["message"] == "Patient not found"

    def test_update_rejects_invalid_values(self, api_client):
        """Test update rejects invalid values."""
        api_client.post("/api/patients", json=patient_doc("PAT00001"))
        response = api_client.put("/api/patients/PAT00001", json={"age": -3})
        assert response.status_code == 400


class TestDoctors:
    """Test doctors."""

    def test_ids_are_assigned_sequentially(self, api_client):
        """Test ids are assigned sequentially."""
        first = api_client.post("/api/doctors", json=doctor_doc("ignored", user_id="mehta"))
        second = api_client.post("/api/doctors", json=doctor_doc("ignored", user_id="rao"))

        assert first.status_code == 201
        assert first.json()["doctor"]["doctor_id"] == "DOC001"
        assert second.json()["doctor"]["doctor_id"] == "DOC002"

    def test_password_is_never_returned(self, api_client):
        """Test password is never returned."""
        api_client.post("/api/doctors", json=doctor_doc(user_id="mehta"))
        assert "password" not in api_client.get("/api/doctors").json()[0]
        assert "password" not in api_client.get("/api/doctors/DOC001").json()

    def test_missing_fields(self, api_client):
        """Test that a doctor without required fields is rejected."""
        response = api_client.post("/api/doctors", json={"doctor_name": "Dr. X"})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Missing required fields")

    def test_user_id_taken(self, api_client):
        """Test user id taken."""
        api_client.post("/api/doctors", json=doctor_doc(user_id="mehta"))
        response = api_client.post("/api/doctors", json=doctor_doc(user_id="mehta"))
        assert response.json()["message"] == "User ID already exists. Please choose a different user ID."

    def test_by_specialty(self, api_client):
        """Test listing doctors by specialty."""
        api_client.post("/api/doctors/bulk", json=[
            doctor_doc("DOC001", doctor_name="Dr. Zed"),
            doctor_doc("DOC002", doctor_name="Dr. Abe"),
            doctor_doc("DOC003", doctor_speciality="Neurology"),
        ])
        names = [d["doctor_name"] for d in api_client.get("/api/doctors/specialty/Cardiology").json()]
        assert names == ["Dr. Abe", "Dr. Zed"]

    def test_not_found_names_doctor(self, api_client):
        """Test not found names doctor."""
        response = api_client.delete("/api/doctors/DOC404")
        assert response.status_code == 404
        assert response.json()["doctorId"] == "DOC404"

    def test_next_doctor_id_skips_gaps(self):
        """Test next doctor id skips gaps."""
        assert next_doctor_id([{"doctor_id": "DOC001"}, {"doctor_id": "DOC007"}, {"doctor_id": "X"}]) == "DOC008"
        assert next_doctor_id([]) == "DOC001"


class TestVisits:
    """Test visits."""

    def test_bulk_and_listing_order(self, api_client):
        """Test bulk and listing order."""
        response = api_client.post("/api/visits/bulk", json=[
            visit_doc("VIS00001", visit_date="2024-01-01"),
            visit_doc("VIS00002", visit_date="2024-03-01", doctor_id="DOC002"),
        ])
        assert response.status_code == 201
        assert response.json()["message"] == "Visits inserted"

        listed = api_client.get("/api/visits").json()
        assert [v["visit_id"] for v in listed] == ["VIS00002", "VIS00001"]

        by_doctor = api_client.get("/api/visits/doctor/DOC002").json()
        assert [v["visit_id"] for v in by_doctor] == ["VIS00002"]

    def test_severity_out_of_range_is_rejected(self, api_client):
        """Test severity out of range is rejected."""
        response = api_client.post("/api/visits", json=visit_doc(severity_score=9))
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid document data"


class TestPrescriptions:
    """Test prescriptions."""

    def test_bulk_success_message(self, api_client):
        """Test bulk success message."""
        response = api_client.post("/api/prescriptions/bulk", json=[
            prescription_doc("PRE00001"),
            prescription_doc("PRE00002", prescribed_date="2024-02-02"),
        ])
        assert response.status_code == 201
        assert response.json()["message"] == "2 prescriptions saved successfully"
        assert response.json()["count"] == 2

    @pytest.mark.parametrize("payload", [[], {"prescription_id": "PRE1"}])
    def test_bulk_rejects_empty_or_non_array(self, api_client, payload):
        """Test bulk rejects empty or non array."""
        response = api_client.post("/api/prescriptions/bulk", json=payload)
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid data format or empty array"

    def test_bulk_reports_missing_field_with_index(self, api_client):
        """Test bulk reports missing field with index."""
        response = api_client.post("/api/prescriptions/bulk", json=[
            prescription_doc("PRE00001"),
            prescription_doc("PRE00002", drug_name=""),
        ])
        assert response.status_code == 400
        assert response.json()["message"] == "Prescription at index 1 missing required field: drug_name"

    def test_listing_by_patient_and_doctor(self, api_client):
        """Test listing by patient and doctor."""
        api_client.post("/api/prescriptions/bulk", json=[
            prescription_doc("PRE00001", prescribed_date="2024-01-01"),
            prescription_doc("PRE00002", prescribed_date="2024-02-01", patient_id="PAT00002", doctor_id="DOC002"),
        ])
        assert [p["prescription_id"] for p in api_client.get("/api/prescriptions").json()] == ["PRE00002", "PRE00001"]
        assert len(api_client.get("/api/prescriptions/patient/PAT00002").json()) == 1
        assert len(api_client.get("/api/prescriptions/doctor/DOC001").json()) == 1

    def test_create_requires_visit(self, api_client):
        """Test create requires visit."""
        doc = prescription_doc()
        doc["visit_id"] = ""
        response = api_client.post("/api/prescriptions", json=doc)
        assert response.status_code == 400
        assert response.json()["message"] == "Missing required field: visit_id"


class TestUsers:
    """Test users."""

    def user(self, user_id="u1", **overrides):
        doc = {"user_id": user_id, "name": "Asha", "email": f"{user_id}@example.com", "phone": "98765"}
        doc.update(overrides)
        return doc

    def test_create_defaults_role(self, api_client):
        """Test create defaults role."""
        response = api_client.post("/api/users", json=self.user())
        assert response.status_code == 201
        assert response.json()["user"]["role"] == "patient"

    def test_duplicate_email(self, api_client):
        """Test duplicate email."""
        api_client.post("/api/users", json=self.user("u1", email="same@example.com"))
        response = api_client.post("/api/users", json=self.user("u2", email="same@example.com"))
        assert response.status_code == 400
        assert response.json()["message"] == "User ID or Email already exists"

    def test_role_listing_excludes_inactive(self, api_client):
        """Test role listing excludes inactive."""
        api_client.post("/api/users", json=self.user("u1", name="Zoe", role="doctor"))
        api_client.post("/api/users", json=self.user("u2", name="Amir", role="doctor"))
        api_client.post("/api/users", json=self.user("u3", name="Ben", role="doctor", is_active=False))

        names = [u["name"] for u in api_client.get("/api/users/role/doctor").json()]
        assert names == ["Amir", "Zoe"]

    def test_update_keeps_user_id(self, api_client):
        """Test update keeps user id."""
        api_client.post("/api/users", json=self.user("u1"))
        response = api_client.put("/api/users/u1", json={"user_id": "u9", "name": "Renamed"})
        assert response.json()["user"]["user_id"] == "u1"
        assert response.json()["user"]["name"] == "Renamed"
