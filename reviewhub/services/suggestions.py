"""Clustering and quota-based prioritization of review suggestions."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Iterable, Optional

from reviewhub.models.domain import DeliveryStatus
from reviewhub.models.suggestions import (
    SEVERITY_RANK,
    CodeSuggestion,
    GroupingMode,
    LimitationType,
    ParentClustering,
    PriorityStatus,
    RelatedClustering,
    SeverityLevel,
    SeverityLimits,
)

_logger = logging.getLogger(__name__)

OCCURRENCES_HEADER = "This issue appears in multiple locations:"

CATEGORY_PRIORITY = {
    "kody_rules": 1,
    "breaking_changes": 2,
    "security": 3,
    "potential_issues": 4,
    "error_handling": 5,
    "performance_and_optimization": 6,
    "maintainability": 7,
    "refactoring": 8,
    "code_style": 9,
    "documentation_and_comments": 10,
}
DEFAULT_CATEGORY_PRIORITY = 999


def _line_range(suggestion: CodeSuggestion) -> str:
    return f"{suggestion.relevant_lines_start}-{suggestion.relevant_lines_end}"


def enrich_parent_suggestions_with_related(suggestions: list[CodeSuggestion]) -> list[CodeSuggestion]:
    """Rewrite each PARENT suggestion to list every location of its cluster.

    Related suggestions are grouped by parent id in one pass so the rewrite
    stays linear. Input objects are never modified; parents come back as new
    copies, everything else is returned as-is.
    """

    related_by_parent: dict[str, list[CodeSuggestion]] = defaultdict(list)
    for suggestion in suggestions:
        info = suggestion.clustering_information
        if isinstance(info, RelatedClustering) and info.parent_suggestion_id:
            related_by_parent[info.parent_suggestion_id].append(suggestion)

    enriched: list[CodeSuggestion] = []
    for suggestion in suggestions:
        info = suggestion.clustering_information
        if not isinstance(info, ParentClustering):
            enriched.append(suggestion)
            continue
        occurrences = [suggestion, *related_by_parent.get(suggestion.id, [])]
        lines = "\n".join(f"* {item.relevant_file}: Lines {_line_range(item)}" for item in occurrences)
        description = info.problem_description or suggestion.suggestion_content
        body = f"{description}\n\n{OCCURRENCES_HEADER}\n{lines}"
        enriched.append(suggestion.model_copy(update={"suggestion_content": body}))
    return enriched


def consolidate_clusters(
    suggestions: list[CodeSuggestion], grouping_mode: GroupingMode
) -> list[CodeSuggestion]:
    """Fold RELATED suggestions into their parents for FULL grouping.

    Parents are enriched with every occurrence and each RELATED suggestion,
    including one whose parent is missing, is kept but marked
    ``DISCARDED_BY_CLUSTERING`` and ``not_sent``. Other modes return the input.
    """

    if grouping_mode != GroupingMode.FULL:
        return suggestions
    return [
        s.model_copy(
            update={
                "priority_status": PriorityStatus.DISCARDED_BY_CLUSTERING,
                "delivery_status": DeliveryStatus.NOT_SENT,
            }
        )
        if s.is_related
        else s
        for s in enrich_parent_suggestions_with_related(suggestions)
    ]


def severity_tier(severity: Optional[str]) -> Optional[SeverityLevel]:
    """Case-insensitive tier lookup; a missing severity counts as low."""

    if not severity:
        return SeverityLevel.LOW
    try:
        return SeverityLevel(severity.strip().lower())
    except ValueError:
        return None


def prioritize_by_severity_limits(
    suggestions: list[CodeSuggestion], limits: SeverityLimits
) -> list[CodeSuggestion]:
    """Apply a per-tier quota in input order.

    Every suggestion comes back, in its input position, with a priority
    status. Within a tier the earliest suggestions win; a quota of zero admits
    the whole tier. Unrecognised severities never consume quota.
    """

    taken: dict[SeverityLevel, int] = defaultdict(int)
    result: list[CodeSuggestion] = []
    for suggestion in suggestions:
        tier = severity_tier(suggestion.severity)
        if tier is None:
            status = PriorityStatus.DISCARDED_BY_SEVERITY
        else:
            limit = limits.limit_for(tier)
            if limit == 0 or taken[tier] < limit:
                taken[tier] += 1
                status = PriorityStatus.PRIORITIZED
            else:
                status = PriorityStatus.DISCARDED_BY_QUANTITY
        result.append(
            suggestion.model_copy(
                update={"priority_status": status, "delivery_status": DeliveryStatus.NOT_SENT}
            )
        )
    _logger.debug(
        "Suggestions prioritized by severity limits",
        extra={"total": len(suggestions), "selected": dict(taken), "limits": limits.model_dump()},
    )
    return result


def sort_suggestions_by_priority(suggestions: Iterable[CodeSuggestion]) -> list[CodeSuggestion]:
    """Highest rank score first, then by label category."""

    return sorted(
        suggestions,
        key=lambda s: (
            -(s.rank_score or 0),
            CATEGORY_PRIORITY.get(s.label or "", DEFAULT_CATEGORY_PRIORITY),
        ),
    )


def _mark(suggestions: Iterable[CodeSuggestion], status: PriorityStatus) -> list[CodeSuggestion]:
    return [s.model_copy(update={"priority_status": status}) for s in suggestions]


def prioritize_by_file(suggestions: list[CodeSuggestion], limit_per_file: int) -> list[CodeSuggestion]:
    groups: dict[str, list[CodeSuggestion]] = {}
    for suggestion in suggestions:
        groups.setdefault(suggestion.relevant_file, []).append(suggestion)
    selected: list[CodeSuggestion] = []
    for file_suggestions in groups.values():
        ordered = sort_suggestions_by_priority(file_suggestions)
        selected.extend(ordered if limit_per_file == 0 else ordered[:limit_per_file])
    return _mark(selected, PriorityStatus.PRIORITIZED)


def prioritize_by_pull_request(suggestions: list[CodeSuggestion], pr_limit: int) -> list[CodeSuggestion]:
    ordered = sort_suggestions_by_priority(suggestions)
    return _mark(ordered if pr_limit == 0 else ordered[:pr_limit], PriorityStatus.PRIORITIZED)


def prioritize_by_quantity(
    suggestions: list[CodeSuggestion],
    limitation_type: LimitationType,
    max_suggestions: int = 0,
    grouping_mode: GroupingMode = GroupingMode.MINIMAL,
    severity_limits: Optional[SeverityLimits] = None,
) -> list[CodeSuggestion]:
    """Select which suggestions are surfaced; returns only the selected ones."""

    related: list[CodeSuggestion] = []
    candidates = suggestions
    if grouping_mode in (GroupingMode.SMART, GroupingMode.FULL):
        related = [s for s in suggestions if s.is_related]
        candidates = [s for s in suggestions if not s.is_related]

    if limitation_type == LimitationType.SEVERITY and severity_limits is not None:
        selected = [
            s
            for s in prioritize_by_severity_limits(candidates, severity_limits)
            if s.priority_status == PriorityStatus.PRIORITIZED
        ]
    elif limitation_type == LimitationType.PR:
        selected = prioritize_by_pull_request(candidates, max_suggestions)
    else:
        selected = prioritize_by_file(candidates, max_suggestions)

    if not related:
        return selected
    prioritized_ids = {s.id for s in selected}
    followers = [
        s
        for s in related
        if isinstance(s.clustering_information, RelatedClustering)
        and s.clustering_information.parent_suggestion_id in prioritized_ids
    ]
    return selected + _mark(followers, PriorityStatus.PRIORITIZED_BY_CLUSTERING)


def discarded_by_quantity(
    before: list[CodeSuggestion], after: list[CodeSuggestion]
) -> list[CodeSuggestion]:
    """Suggestions present before quantity filtering but missing after it."""

    kept = {s.id for s in after}
    return [
        s.model_copy(
            update={
                "priority_status": PriorityStatus.DISCARDED_BY_QUANTITY,
                "delivery_status": DeliveryStatus.NOT_SENT,
            }
        )
        for s in before
        if s.id and s.id not in kept
    ]


def normalize_cluster_severity(suggestions: list[CodeSuggestion]) -> list[CodeSuggestion]:
    """Give every member of a PARENT cluster the cluster's highest severity."""

    by_id = {s.id: s for s in suggestions}
    updated: dict[str, str] = {}
    for suggestion in suggestions:
        info = suggestion.clustering_information
        if not isinstance(info, ParentClustering):
            continue
        members = [by_id[i] for i in [suggestion.id, *info.related_suggestions_ids] if i in by_id]
        highest = SeverityLevel.LOW
        for member in members:
            tier = severity_tier(member.severity)
            if tier is not None and SEVERITY_RANK[tier] > SEVERITY_RANK[highest]:
                highest = tier
        for member in members:
            updated[member.id] = highest.value
    return [
        s.model_copy(update={"severity": updated[s.id]}) if s.id in updated else s
        for s in suggestions
    ]
