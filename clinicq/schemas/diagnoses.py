"""Diagnosis and billing schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer, field_validator


class DrugItem(BaseModel):
    """A prescribed drug line."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=1)
    price: Decimal = Field(..., ge=0, decimal_places=2)

    model_config = {"from_attributes": True}

    @field_serializer("price", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class DiagnosisCreate(BaseModel):
    """Schema for recording a consultation outcome."""

    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    diagnosis: str = Field(..., min_length=1, max_length=1000)
    symptoms: str = Field(..., min_length=1, max_length=1000)
    notes: str | None = Field(None, max_length=2000)
    drugs: list[DrugItem] = Field(default_factory=list)
    doctor_fee: Decimal = Field(..., ge=0, decimal_places=2)

    @field_validator("diagnosis", "symptoms")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim surrounding whitespace and reject blank text."""
        v = v.strip()
        if not v:
            raise ValueError("Field cannot be blank")
        return v


class DiagnosisUpdate(BaseModel):
    """Partial update; totals are recomputed when fees or drugs change."""

    diagnosis: str | None = Field(None, min_length=1, max_length=1000)
    symptoms: str | None = Field(None, min_length=1, max_length=1000)
    notes: str | None = Field(None, max_length=2000)
    drugs: list[DrugItem] | None = None
    doctor_fee: Decimal | None = Field(None, ge=0, decimal_places=2)


class DiagnosisResponse(BaseModel):
    """Schema for diagnosis response."""

    id: UUID
    appointment_id: UUID
    patient_id: UUID
    doctor_id: UUID
    diagnosis: str
    symptoms: str
    notes: str | None = None
    drugs: list[DrugItem]
    registration_fee: Decimal
    doctor_fee: Decimal
    drugs_cost: Decimal
    total_amount: Decimal
    prescribed_at: datetime
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_serializer(
        "registration_fee", "doctor_fee", "drugs_cost", "total_amount", when_used="json"
    )
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class RevenueStatsResponse(BaseModel):
    """Aggregated billing figures."""

    total_diagnoses: int
    total_registration_fees: Decimal
    total_doctor_fees: Decimal
    total_drugs_cost: Decimal
    total_revenue: Decimal
    average_per_diagnosis: Decimal

    @field_serializer(
        "total_registration_fees",
        "total_doctor_fees",
        "total_drugs_cost",
        "total_revenue",
        "average_per_diagnosis",
        when_used="json",
    )
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)
