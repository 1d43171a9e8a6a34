"""Tests for the document models."""

import pytest
from conftest import doctor_doc, patient_doc, prescription_doc, visit_doc
from pydantic import ValidationError

from hospitalms.domain.models import (
    Doctor,
    Patient,
    Prescription,
    User,
    Visit,
    key_field_for,
    model_for,
)


class TestPatient:
    """Test patient."""

    def test_defaults(self):
        """Test patient field defaults."""
        document = Patient.model_validate(patient_doc()).to_document()
        assert document["chronic_conditions"] == ["None"]
        assert document["blood_group"] == "O+"
        assert document["insurance_type"] == "Basic"

    def test_unknown_gender_is_normalized(self):
        """Test unknown gender is normalized."""
        patient = Patient.model_validate(patient_doc(gender="x"))
        assert patient.to_document()["gender"] == "Unknown"

    def test_registration_date_is_required(self):
        """Test registration date is required."""
        doc = patient_doc()
        del doc["registration_date"]
        with pytest.raises(ValidationError):
            Patient.model_validate(doc)

    def test_unknown_fields_are_dropped(self):
        """Test unknown fields are dropped."""
        document = Patient.model_validate(patient_doc(ward="B")).to_document()
        assert "ward" not in document

    def test_key(self):
        """Test the key property."""
        assert Patient.model_validate(patient_doc("PAT00042")).key == "PAT00042"


class TestVisit:
    """Test visit."""

    @pytest.mark.parametrize("score", [-1, 6])
    def test_severity_bounds(self, score):
        """Test that severity outside 0 to 5 is rejected."""
        with pytest.raises(ValidationError):
            Visit.model_validate(visit_doc(severity_score=score))

    def test_icu_is_accepted_through_the_model(self):
        """Test that ICU is accepted through the model."""
        assert Visit.model_validate(visit_doc(visit_type="ICU")).to_document()["visit_type"] == "ICU"


class TestPrescription:
    """Test prescription."""

    def test_defaults(self):
        """Test prescription field defaults."""
        document = Prescription.model_validate(prescription_doc()).to_document()
        assert (document["quantity"], document["days_supply"], document["cost"]) == (1, 7, 0)

    def test_drug_name_is_required(self):
        """Test drug name is required."""
        with pytest.raises(ValidationError):
            Prescription.model_validate(prescription_doc(drug_name=""))


class TestAccounts:
    """Test accounts."""

    def test_doctor_created_at_is_serialized(self):
        """Test doctor created at is serialized."""
        document = Doctor.model_validate(doctor_doc()).to_document()
        assert isinstance(document["created_at"], str)

    def test_user_defaults(self):
        """Test user role and active defaults."""
        user = User.model_validate({"user_id": "u1", "name": "A", "email": "a@x.org", "phone": "1"})
        assert user.role == "patient"
        assert user.is_active is True


class TestRegistry:
    """Test registry."""

    def test_lookup(self):
        """Test model and key field lookup by collection."""
        assert model_for("visits") is Visit
        assert key_field_for("users") == "user_id"

    def test_unknown_collection(self):
        """Test lookup of an unknown collection."""
        with pytest.raises(KeyError):
            model_for("wards")
