"""Bulk linked import schemas."""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

MAX_IMPORT_ROWS = 5000

CONTACT_STATUSES = ("active", "inactive", "lead", "churned")


class DuplicateStrategy(str, Enum):
    SKIP = "skip"
    OVERWRITE = "overwrite"
    CREATE_ANYWAY = "create_anyway"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LinkedImportRow(_CamelModel):
    """One external contact row, optionally naming the company it belongs to."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    title: Optional[str] = None
    linkedin_url: Optional[str] = None
    source: Optional[str] = None
    status: str = "active"
    contact_type: Optional[str] = None
    contact_subtype: Optional[str] = None
    company_name: Optional[str] = None
    company_role: Optional[str] = None

    @field_validator(
        "email", "phone", "title", "linkedin_url", "source",
        "contact_type", "contact_subtype", "company_name", "company_role",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return "active"
        if value not in CONTACT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(CONTACT_STATUSES)}")
        return value


class BulkLinkedImportInput(_CamelModel):
    # Rows stay raw values here; each one is validated on its own so that
    # a malformed row is reported in the result instead of failing the batch.
    rows: List[Any] = Field(min_length=1, max_length=MAX_IMPORT_ROWS)
    duplicate_strategy: DuplicateStrategy = DuplicateStrategy.SKIP
    auto_classify: bool = False


class ImportRowError(BaseModel):
    row: int
    field: Optional[str] = None
    message: str


class LinkedImportResult(_CamelModel):
    imported: int = 0
    skipped: int = 0
    updated: int = 0
    flagged_for_review: int = 0
    companies_created: int = 0
    roles_created: int = 0
    errors: List[ImportRowError] = Field(default_factory=list)
