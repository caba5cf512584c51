import re
from datetime import timezone

UTC = timezone.utc

# pattern router
PATIENT_ID_RE = re.compile(r"(?:\bpatient|\bid|#)[:\s]*(?:id[:\s]*)?(?:#|number|no\.?)?[:\s]*(\d+)")
PATIENT_NAME_RE = re.compile(r"\b(?:named|called)\s+([A-Z][a-zA-Z'-]+(?:\s+[A-Z][a-zA-Z'-]+)+)")
TRAILING_ID_RE = re.compile(r"(\d+)\D*$")

LIST_PATIENTS_PHRASES = ["all patients", "list patients", "list all patients", "show patients"]

GET_ALL_PATIENTS = "get_all_patients"
GET_PATIENT_BY_NAME = "get_patient_by_name"
GET_PATIENT_BY_ID = "get_patient_by_id"
GET_PROGRESS_NOTES = "get_progress_notes"
GET_CARE_PLAN = "get_care_plan"

SUB_RESOURCE_TOOLS = {
    "progress note": GET_PROGRESS_NOTES,
    "care plan": GET_CARE_PLAN,
}
