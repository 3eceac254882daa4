import re

from rapidfuzz import fuzz
from sqlalchemy.orm import Session

from backend.config import settings
from backend.models.lab_test import LabTest


def _normalize(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def score_test(test: LabTest, search: str) -> float:
    query = _normalize(search)
    if not query:
        return 0.0
    name_score = fuzz.partial_ratio(query, _normalize(test.test_name))
    code_score = fuzz.ratio(query, _normalize(test.test_code))
    return max(name_score, code_score)


def search_lab_tests(
    db: Session,
    category: str | None = None,
    search: str | None = None,
    threshold: int | None = None,
) -> list[LabTest]:
    query = db.query(LabTest).filter(LabTest.is_active.is_(True))
    if category:
        query = query.filter(LabTest.category == category)
    tests = query.order_by(LabTest.category.asc(), LabTest.test_name.asc()).all()
    if not search or not search.strip():
        return tests

    cutoff = threshold if threshold is not None else settings.catalog_search_threshold
    scored = [(score_test(test, search), test) for test in tests]
    matches = [(score, test) for score, test in scored if score >= cutoff]
    matches.sort(key=lambda pair: (-pair[0], pair[1].test_name))
    return [test for _, test in matches]
