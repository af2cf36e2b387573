"""Suggestion models used by clustering and prioritization."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from reviewhub.models.domain import DeliveryStatus


class ClusteringType(str, Enum):
    PARENT = "parent"
    RELATED = "related"


class SeverityLevel(str, Enum):
    """Severity tiers ordered from least to most urgent."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK = {
    SeverityLevel.LOW: 1,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.HIGH: 3,
    SeverityLevel.CRITICAL: 4,
}


class PriorityStatus(str, Enum):
    PRIORITIZED = "prioritized"
    PRIORITIZED_BY_CLUSTERING = "prioritized_by_clustering"
    DISCARDED_BY_SEVERITY = "discarded_by_severity"
    DISCARDED_BY_QUANTITY = "discarded_by_quantity"
    DISCARDED_BY_CLUSTERING = "discarded_by_clustering"


class LimitationType(str, Enum):
    FILE = "file"
    PR = "pr"
    SEVERITY = "severity"


class GroupingMode(str, Enum):
    MINIMAL = "minimal"
    SMART = "smart"
    FULL = "full"


class ParentClustering(BaseModel):
    """Marks the primary finding of a cluster."""

    type: Literal[ClusteringType.PARENT] = ClusteringType.PARENT
    related_suggestions_ids: list[str] = Field(default_factory=list)
    problem_description: Optional[str] = None


class RelatedClustering(BaseModel):
    """Marks a duplicate of a parent finding elsewhere in the diff."""

    type: Literal[ClusteringType.RELATED] = ClusteringType.RELATED
    parent_suggestion_id: str


ClusteringInformation = Annotated[
    Union[ParentClustering, RelatedClustering],
    Field(discriminator="type"),
]


class CodeSuggestion(BaseModel):
    """A single review suggestion produced by the automation strategy."""

    id: str
    relevant_file: str
    relevant_lines_start: Optional[int] = None
    relevant_lines_end: Optional[int] = None
    severity: Optional[str] = None
    label: Optional[str] = None
    suggestion_content: str = ""
    rank_score: Optional[float] = None
    clustering_information: Optional[ClusteringInformation] = None
    priority_status: Optional[PriorityStatus] = None
    delivery_status: Optional[DeliveryStatus] = None

    @property
    def is_parent(self) -> bool:
        return isinstance(self.clustering_information, ParentClustering)

    @property
    def is_related(self) -> bool:
        return isinstance(self.clustering_information, RelatedClustering)


class SeverityLimits(BaseModel):
    """Per-tier quota; zero means unlimited."""

    critical: int = Field(0, ge=0)
    high: int = Field(0, ge=0)
    medium: int = Field(0, ge=0)
    low: int = Field(0, ge=0)

    def limit_for(self, tier: SeverityLevel) -> int:
        return getattr(self, tier.value)
