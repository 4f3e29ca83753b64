# Repositories package
from .base import BaseRepository
from .application_repository import JobApplicationRepository

__all__ = [
    "BaseRepository",
    "JobApplicationRepository",
]
