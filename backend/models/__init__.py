from backend.models.lab_order import LabOrder, LabOrderTest
from backend.models.lab_report import LabReport
from backend.models.lab_result import LabResult
from backend.models.lab_test import LabTest
from backend.models.user import User, UserSession

__all__ = [
    "User",
    "UserSession",
    "LabTest",
    "LabOrder",
    "LabOrderTest",
    "LabResult",
    "LabReport",
]
