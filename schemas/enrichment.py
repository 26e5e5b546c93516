"""Staleness scoring and enrichment review schemas."""
from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StalenessFlag(str, Enum):
    # Declaration order is the evaluation order of the scoring engine.
    NO_EMAIL = "no_email"
    NO_PHONE = "no_phone"
    TITLE_EMPTY = "title_empty"
    NO_COMPANY_ROLE = "no_company_role"
    LINKEDIN_MISSING = "linkedin_missing"
    NOT_VERIFIED_90D = "not_verified_90d"
    NOT_VERIFIED_180D = "not_verified_180d"
    NOT_VERIFIED_365D = "not_verified_365d"


# Score contribution per flag. All completeness flags plus the 365d recency
# flag add up to 1.0; the engine clamps the sum at 1.0 regardless.
STALENESS_WEIGHTS: dict[StalenessFlag, float] = {
    StalenessFlag.NO_EMAIL: 0.15,
    StalenessFlag.NO_PHONE: 0.05,
    StalenessFlag.TITLE_EMPTY: 0.15,
    StalenessFlag.NO_COMPANY_ROLE: 0.2,
    StalenessFlag.LINKEDIN_MISSING: 0.1,
    StalenessFlag.NOT_VERIFIED_90D: 0.1,
    StalenessFlag.NOT_VERIFIED_180D: 0.2,
    StalenessFlag.NOT_VERIFIED_365D: 0.35,
}


class ReviewStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PARTIALLY_ACCEPTED = "partially_accepted"


class ReviewAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    PARTIAL = "partial"


class EnrichableField(str, Enum):
    """Contact columns an enrichment proposal is allowed to change."""

    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    TITLE = "title"
    PHONE = "phone"
    EMAIL = "email"
    LINKEDIN_URL = "linkedin_url"
    CONTACT_TYPE = "contact_type"
    CONTACT_SUBTYPE = "contact_subtype"
    SOURCE = "source"
    STATUS = "status"

    @classmethod
    def parse(cls, name: str) -> Optional["EnrichableField"]:
        """Return the member for a snake_case or camelCase field name, else None."""
        if not isinstance(name, str):
            return None
        for member in cls:
            if name == member.value or name == to_camel(member.value):
                return member
        return None


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StalenessResult(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    flags: List[StalenessFlag] = Field(default_factory=list)


class ProposedChange(BaseModel):
    current: Optional[str] = None
    proposed: str
    confidence: Literal["low", "medium", "high"]


class ReviewProposalInput(_CamelModel):
    proposal_id: str = Field(min_length=1)
    action: ReviewAction
    accepted_fields: List[str] = Field(default_factory=list)


class StalenessQueueFilter(_CamelModel):
    min_score: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    search: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=25, ge=1, le=100)


class StalenessQueueItem(_CamelModel):
    id: str
    contact_id: str
    first_name: str
    last_name: str
    title: Optional[str] = None
    score: float
    flags: List[str] = Field(default_factory=list)
    last_verified_at: Optional[datetime] = None


class StalenessQueuePage(_CamelModel):
    items: List[StalenessQueueItem]
    total: int


class EnrichmentStats(_CamelModel):
    total_contacts: int
    flagged_contacts: int
    pending_proposals: int
    verified_this_month: int
