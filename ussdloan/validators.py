import re
from enum import Enum

from .config import PHONE_PREFIX, NATIONAL_ID_PREFIX

NAME_RE = re.compile(r"^[A-Za-z]+(?:\s+[A-Za-z]+)+$")
DOB_RE = re.compile(r"^(0[1-9]|[12][0-9]|3[01])(0[1-9]|1[0-2])(19|20)\d{2}$")
MSISDN_RE = re.compile(rf"^{re.escape(PHONE_PREFIX)}\d{{9}}$")


class DocumentType(str, Enum):
    NATIONAL_ID = "national_id"
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"

    @property
    def label(self):
        return DOCUMENT_LABELS[self]


DOCUMENT_LABELS = {
    DocumentType.NATIONAL_ID: "National ID",
    DocumentType.PASSPORT: "Passport",
    DocumentType.DRIVERS_LICENSE: "Driver's License",
}

# Menu digit -> document type
DOCUMENT_CHOICES = {
    "1": DocumentType.NATIONAL_ID,
    "2": DocumentType.PASSPORT,
    "3": DocumentType.DRIVERS_LICENSE,
}

# document type -> (pattern, hint shown when the number does not match)
DOCUMENT_FORMATS = {
    DocumentType.NATIONAL_ID: (
        re.compile(rf"^{re.escape(NATIONAL_ID_PREFIX)}\d{{10}}$"),
        f"Invalid National ID format. Example: {NATIONAL_ID_PREFIX}1234567890",
    ),
    DocumentType.PASSPORT: (
        re.compile(r"^[AG]\d{7}$"),
        "Invalid Passport format. Must start with A or G followed by 7 digits. Example: A1234567 or G1234567",
    ),
    DocumentType.DRIVERS_LICENSE: (
        re.compile(r"^[A-Z]{3}-\d{8}-\d{4}$"),
        "Invalid Driver's License format. Example: MIC-05081980-7558",
    ),
}


def is_valid_msisdn(msisdn: str) -> bool:
    return bool(MSISDN_RE.match(msisdn or ""))


def is_valid_name(name: str) -> bool:
    return bool(NAME_RE.match((name or "").strip()))


def is_valid_dob(dob: str) -> bool:
    return bool(DOB_RE.match((dob or "").strip()))


def normalize_document_number(number: str) -> str:
    return (number or "").strip().upper()


def is_valid_document(doc_type: DocumentType, number: str) -> bool:
    pattern, _ = DOCUMENT_FORMATS[DocumentType(doc_type)]
    return bool(pattern.match(normalize_document_number(number)))


def document_hint(doc_type: DocumentType) -> str:
    return DOCUMENT_FORMATS[DocumentType(doc_type)][1]
