import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from backend.database import SessionLocal
from backend.models.lab_test import LabTest

logger = logging.getLogger(__name__)


LAB_TESTS = [
    {
        "test_code": "CBC001",
        "test_name": "Complete Blood Count (CBC)",
        "category": "Hematology",
        "range_text": "WBC: 4.5-11.0 x10³/µL, RBC: 4.0-5.2 x10⁶/µL, Hemoglobin: 12-16 g/dL",
        "price": "25.00",
        "turnaround_time": 2,
        "specimen": "Blood",
        "instructions": "Fasting not required. EDTA tube preferred.",
    },
    {
        "test_code": "ESR001",
        "test_name": "Erythrocyte Sedimentation Rate (ESR)",
        "category": "Hematology",
        "range_text": "Male: 0-15 mm/hr, Female: 0-20 mm/hr",
        "price": "15.00",
        "turnaround_time": 1,
        "specimen": "Blood",
    },
    {
        "test_code": "GLU001",
        "test_name": "Fasting Blood Glucose",
        "category": "Chemistry",
        "range_min": 70,
        "range_max": 100,
        "range_unit": "mg/dL",
        "price": "12.00",
        "turnaround_time": 1,
        "specimen": "Blood",
        "instructions": "Patient must fast for 8-12 hours before test.",
    },
    {
        "test_code": "HBA1C001",
        "test_name": "Hemoglobin A1c (HbA1c)",
        "category": "Chemistry",
        "range_text": "Normal: <5.7%, Prediabetes: 5.7-6.4%, Diabetes: ≥6.5%",
        "price": "35.00",
        "turnaround_time": 4,
        "specimen": "Blood",
        "instructions": "No fasting required.",
    },
    {
        "test_code": "LIPID001",
        "test_name": "Lipid Panel",
        "category": "Chemistry",
        "range_text": "Total Cholesterol: <200 mg/dL, LDL: <100 mg/dL, HDL: >40 mg/dL (M), >50 mg/dL (F)",
        "price": "28.00",
        "turnaround_time": 2,
        "specimen": "Blood",
        "instructions": "Patient must fast for 9-12 hours.",
    },
    {
        "test_code": "LIVER001",
        "test_name": "Liver Function Panel",
        "category": "Chemistry",
        "range_text": "ALT: 7-40 U/L, AST: 10-40 U/L, Bilirubin: 0.2-1.2 mg/dL",
        "price": "32.00",
        "turnaround_time": 3,
        "specimen": "Blood",
    },
    {
        "test_code": "URINE001",
        "test_name": "Urine Culture & Sensitivity",
        "category": "Microbiology",
        "range_text": "No growth or <10,000 CFU/mL",
        "price": "22.00",
        "turnaround_time": 48,
        "specimen": "Urine",
        "instructions": "Mid-stream clean catch urine sample required.",
    },
    {
        "test_code": "BLOOD001",
        "test_name": "Blood Culture",
        "category": "Microbiology",
        "range_text": "No growth",
        "price": "45.00",
        "turnaround_time": 72,
        "specimen": "Blood",
        "instructions": "Collect before antibiotic administration if possible.",
    },
    {
        "test_code": "TSH001",
        "test_name": "Thyroid Stimulating Hormone (TSH)",
        "category": "Immunology",
        "range_min": 0.4,
        "range_max": 4.0,
        "range_unit": "mIU/L",
        "price": "18.00",
        "turnaround_time": 6,
        "specimen": "Blood",
        "instructions": "No special preparation required.",
    },
    {
        "test_code": "PSA001",
        "test_name": "Prostate Specific Antigen (PSA)",
        "category": "Immunology",
        "range_text": "<4.0 ng/mL",
        "range_gender": "Male",
        "price": "25.00",
        "turnaround_time": 4,
        "specimen": "Blood",
        "instructions": "Avoid ejaculation 48 hours before test.",
    },
    {
        "test_code": "PAP001",
        "test_name": "Pap Smear",
        "category": "Pathology",
        "range_text": "Normal cytology",
        "range_gender": "Female",
        "price": "65.00",
        "turnaround_time": 72,
        "specimen": "Other",
        "instructions": "Avoid douching, tampons, or intercourse 24 hours before test.",
    },
    {
        "test_code": "BIOPSY001",
        "test_name": "Tissue Biopsy",
        "category": "Pathology",
        "range_text": "No malignant cells identified",
        "price": "150.00",
        "turnaround_time": 120,
        "specimen": "Other",
        "instructions": "Tissue sample submitted in formalin.",
    },
    {
        "test_code": "XRAY001",
        "test_name": "Chest X-Ray",
        "category": "Radiology",
        "range_text": "Normal chest radiograph",
        "price": "45.00",
        "turnaround_time": 2,
        "specimen": "Other",
        "instructions": "Remove jewelry and metal objects from chest area.",
    },
    {
        "test_code": "CT001",
        "test_name": "CT Scan - Abdomen",
        "category": "Radiology",
        "range_text": "No acute abnormalities",
        "price": "350.00",
        "turnaround_time": 4,
        "specimen": "Other",
        "instructions": "NPO 4 hours before exam. Contrast may be required.",
    },
]


def _apply(test: LabTest, item: dict) -> None:
    test.test_name = item["test_name"]
    test.category = item["category"]
    test.department = item.get("department", "Laboratory")
    test.range_min = item.get("range_min")
    test.range_max = item.get("range_max")
    test.range_unit = item.get("range_unit")
    test.range_text = item.get("range_text")
    test.range_gender = item.get("range_gender", "All")
    test.price = Decimal(item["price"])
    test.turnaround_time = item["turnaround_time"]
    test.specimen = item["specimen"]
    test.instructions = item.get("instructions")


def upsert_lab_tests(db: Session) -> int:
    """Insert or refresh catalog rows keyed by test code. Returns the number of new rows."""
    existing = {row.test_code: row for row in db.query(LabTest).all()}
    created = 0
    for item in LAB_TESTS:
        test = existing.get(item["test_code"])
        if test is None:
            test = LabTest(test_code=item["test_code"], is_active=True)
            db.add(test)
            created += 1
        _apply(test, item)
    db.flush()
    return created


def seed_lab_tests():
    db = SessionLocal()
    try:
        created = upsert_lab_tests(db)
        db.commit()
        logger.info("Lab test catalog seeded: %s new, %s total", created, len(LAB_TESTS))
    finally:
        db.close()
