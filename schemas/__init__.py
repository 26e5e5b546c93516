from .enrichment import (
    STALENESS_WEIGHTS,
    EnrichableField,
    EnrichmentStats,
    ProposedChange,
    ReviewAction,
    ReviewProposalInput,
    ReviewStatus,
    StalenessFlag,
    StalenessQueueFilter,
    StalenessQueueItem,
    StalenessQueuePage,
    StalenessResult,
)
from .imports import (
    BulkLinkedImportInput,
    DuplicateStrategy,
    ImportRowError,
    LinkedImportResult,
    LinkedImportRow,
)

__all__ = [
    "STALENESS_WEIGHTS", "StalenessFlag", "StalenessResult",
    "ReviewStatus", "ReviewAction", "EnrichableField", "ProposedChange",
    "ReviewProposalInput", "StalenessQueueFilter", "StalenessQueueItem",
    "StalenessQueuePage", "EnrichmentStats",
    "DuplicateStrategy", "LinkedImportRow", "BulkLinkedImportInput",
    "ImportRowError", "LinkedImportResult",
]
