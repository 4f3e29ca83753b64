"""
Search and status filtering over an already fetched application list.
"""
from typing import List, Optional, Sequence, TypeVar, Union

from cv_tracker.schemas.application import ApplicationStatus

ALL_STATUSES = "all"

T = TypeVar("T")


def _matches(record, search: str, status_filter: str) -> bool:
    if search:
        if search not in record.job_title.lower() and search not in record.company_name.lower():
            return False
    if status_filter == ALL_STATUSES:
        return True
    status = record.status.value if isinstance(record.status, ApplicationStatus) else record.status
    return status == status_filter


def filter_applications(
    records: Sequence[T],
    search: str = "",
    status_filter: Union[str, ApplicationStatus, None] = ALL_STATUSES,
) -> List[T]:
    """
    Records whose job title or company name contains ``search`` (case-insensitive)
    and whose status equals ``status_filter`` unless it is "all".

    Returns a new list in the input order; the input is never modified.
    """
    needle = (search or "").lower()
    if isinstance(status_filter, ApplicationStatus):
        status_filter = status_filter.value
    status_filter = status_filter or ALL_STATUSES
    return [record for record in records if _matches(record, needle, status_filter)]


class ListViewState:
    """Search term and status filter of the applications list."""

    def __init__(self, search_term: str = "", status_filter: Optional[str] = ALL_STATUSES):
        self.search_term = search_term
        self.status_filter = self._normalize_status(status_filter)

    @staticmethod
    def _normalize_status(status_filter) -> str:
        if status_filter is None or status_filter == ALL_STATUSES:
            return ALL_STATUSES
        # raises ValueError for unknown statuses
        return ApplicationStatus(status_filter).value

    def set_search(self, term: str) -> None:
        self.search_term = term or ""

    def set_status(self, status_filter) -> None:
        self.status_filter = self._normalize_status(status_filter)

    def clear(self) -> None:
        self.search_term = ""
        self.status_filter = ALL_STATUSES

    @property
    def is_filtered(self) -> bool:
        return bool(self.search_term) or self.status_filter != ALL_STATUSES

    def apply(self, records: Sequence[T]) -> List[T]:
        return filter_applications(records, self.search_term, self.status_filter)
