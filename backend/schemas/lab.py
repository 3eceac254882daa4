import math
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Priority = Literal["Routine", "Urgent", "STAT"]
OrderStatus = Literal["Pending", "InProgress", "Completed", "Cancelled"]
TestStatus = Literal["Ordered", "Collected", "InProgress", "Completed", "Cancelled"]
ResultFlag = Literal["Normal", "High", "Low", "Critical", "Abnormal"]
ResultStatus = Literal["Pending", "Completed", "Reviewed", "Amended", "Cancelled"]
ReportStatus = Literal["Draft", "Preliminary", "Final", "Reviewed", "Amended"]
TestCategory = Literal["Hematology", "Chemistry", "Microbiology", "Immunology", "Pathology", "Radiology"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderTestItem(CamelModel):
    test_id: int = Field(description="Catalog id of the ordered test")
    priority: Priority = "Routine"
    instructions: str | None = None


class LabOrderCreate(CamelModel):
    # Presence is checked by the service so the caller gets a specific message.
    patient_id: str | None = None
    tests: list[OrderTestItem] = Field(default_factory=list)
    clinical_info: str | None = None
    encounter_id: str | None = None


class TestStatusUpdate(CamelModel):
    # Kept as a plain string so an unknown value yields "Invalid status".
    status: str
    notes: str | None = None


def _all_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_all_finite(item) for item in value.values())
    if isinstance(value, list):
        return all(_all_finite(item) for item in value)
    return True


class ResultValue(CamelModel):
    value: Any = None
    unit: str | None = None
    flag: ResultFlag | None = None

    @field_validator("value")
    @classmethod
    def validate_value(cls, v):
        if not _all_finite(v):
            raise ValueError("Result values must be finite numbers")
        return v


class LabResultCreate(CamelModel):
    order_id: str = Field(description="Order number, e.g. LAB000001")
    test_id: int
    result: ResultValue
    interpretation: str | None = None
    comments: str | None = None
    methodology: str | None = None
    instrument: str | None = None


class LabReportReview(CamelModel):
    final_diagnosis: str | None = None
    recommendations: str | None = None
