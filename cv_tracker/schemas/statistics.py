"""
Statistics schemas.

Summary metrics derived from a user's application list. Never persisted.
"""

from pydantic import BaseModel, Field
from typing import Dict, List

from .application import Application


class StatsSummary(BaseModel):
    """Dashboard and analytics metrics for one user"""
    total: int = Field(0, description="Total number of applications")
    status_counts: Dict[str, int] = Field(
        default_factory=dict,
        description="Application count per status (only statuses that occur)"
    )
    success_rate: float = Field(0, description="Percentage of applications with an offer, two decimals")
    in_interview: int = Field(0, description="Applications with an interview scheduled or done")
    monthly_counts: Dict[str, int] = Field(
        default_factory=dict,
        description="Recent applications per application month, e.g. {'Mar 2024': 2}"
    )
    recent: List[Application] = Field(default_factory=list)
