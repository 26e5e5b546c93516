"""Typed errors raised by the CRM enrichment services."""
from typing import Optional


class CrmError(Exception):
    """Base class for every error the services raise on purpose."""


class NotFoundError(CrmError):
    """A tenant-scoped entity does not exist, or belongs to another tenant."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(CrmError):
    """Malformed input to an operation."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class ConflictError(CrmError):
    """A uniqueness constraint rejected an insert (e.g. duplicate role link)."""


class TenantContextError(CrmError):
    """No usable tenant id was supplied for a tenant-scoped unit of work."""


class ProposalAlreadyReviewedError(CrmError):
    """The proposal is already in a terminal review state."""

    def __init__(self, proposal_id: str, status: str):
        self.proposal_id = proposal_id
        self.status = status
        super().__init__(f"Proposal {proposal_id} was already reviewed ({status})")
