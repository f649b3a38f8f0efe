"""Priority scoring, sorting, filtering and admission."""

from chatlog_pipeline.ranking.admission import AdmissionFilter, top_records
from chatlog_pipeline.ranking.filters import FilterCriteria, apply_filters
from chatlog_pipeline.ranking.scorer import PriorityScorer
from chatlog_pipeline.ranking.sorter import SortKey, sort_records

__all__ = [
    "AdmissionFilter",
    "FilterCriteria",
    "PriorityScorer",
    "SortKey",
    "apply_filters",
    "sort_records",
    "top_records",
]
