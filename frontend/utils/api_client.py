import os

import requests
import streamlit as st

BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
LAB_URL = f"{BASE_URL}/api/v1/lab"
AUTH_URL = f"{BASE_URL}/api/v1/auth"


def error_message(res: requests.Response) -> str:
    """Pull the message out of the API error envelope."""
    try:
        return res.json().get("message") or res.text
    except ValueError:
        return res.text


class ApiClient:
    def __init__(self, token: str | None = None):
        self.token = token

    @property
    def headers(self):
        h = {}
        if self.token:
            h["Authorization"] = f"Bearer {self.token}"
        return h

    def register(self, **payload):
        return requests.post(f"{AUTH_URL}/register", json=payload, timeout=30)

    def login(self, email: str, password: str):
        return requests.post(f"{AUTH_URL}/login", json={"email": email, "password": password}, timeout=30)

    def logout(self):
        return requests.post(f"{AUTH_URL}/logout", headers=self.headers, timeout=30)

    def lab_tests(self, category: str | None = None, search: str | None = None):
        params = {k: v for k, v in {"category": category, "search": search}.items() if v}
        return requests.get(f"{LAB_URL}/tests", params=params, headers=self.headers, timeout=30)

    def create_order(self, patient_id: str, tests: list[dict], clinical_info: str | None = None, encounter_id: str | None = None):
        payload = {"patientId": patient_id, "tests": tests, "clinicalInfo": clinical_info, "encounterId": encounter_id}
        return requests.post(f"{LAB_URL}/orders", json=payload, headers=self.headers, timeout=30)

    def order(self, order_id: str):
        return requests.get(f"{LAB_URL}/orders/{order_id}", headers=self.headers, timeout=30)

    def queue(self, **filters):
        params = {k: v for k, v in filters.items() if v}
        return requests.get(f"{LAB_URL}/queue", params=params, headers=self.headers, timeout=30)

    def update_test_status(self, order_id: str, test_id: int, status: str, notes: str | None = None):
        return requests.patch(
            f"{LAB_URL}/orders/{order_id}/tests/{test_id}/status",
            json={"status": status, "notes": notes},
            headers=self.headers,
            timeout=30,
        )

    def enter_result(self, payload: dict):
        return requests.post(f"{LAB_URL}/results", json=payload, headers=self.headers, timeout=30)

    def verify_result(self, result_id: int):
        return requests.patch(f"{LAB_URL}/results/{result_id}/verify", headers=self.headers, timeout=30)

    def report(self, order_id: str):
        return requests.get(f"{LAB_URL}/reports/{order_id}", headers=self.headers, timeout=30)

    def review_report(self, order_id: str, final_diagnosis: str | None, recommendations: str | None):
        return requests.patch(
            f"{LAB_URL}/reports/{order_id}",
            json={"finalDiagnosis": final_diagnosis, "recommendations": recommendations},
            headers=self.headers,
            timeout=30,
        )


# ---------------------------------------------------------------------------
# Cached data fetchers, cached for 60 seconds.
# These are standalone functions so @st.cache_data can hash the arguments.
# ---------------------------------------------------------------------------

@st.cache_data(ttl=60, show_spinner=False)
def cached_lab_tests(token: str, category: str | None = None) -> tuple[bool, list]:
    res = ApiClient(token).lab_tests(category=category)
    return res.ok, res.json()["tests"] if res.ok else []


@st.cache_data(ttl=60, show_spinner=False)
def cached_stats(token: str) -> tuple[bool, dict]:
    res = requests.get(f"{LAB_URL}/stats", headers={"Authorization": f"Bearer {token}"}, timeout=30)
    return res.ok, res.json() if res.ok else {}


@st.cache_data(ttl=60, show_spinner=False)
def cached_reports(token: str, status: str | None = None) -> tuple[bool, list]:
    params = {"status": status} if status else {}
    res = requests.get(f"{LAB_URL}/reports", params=params, headers={"Authorization": f"Bearer {token}"}, timeout=30)
    return res.ok, res.json()["reports"] if res.ok else []
