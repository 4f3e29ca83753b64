from .application_service import ApplicationService
from .dashboard_service import ApplicationDashboard
from .form_service import ApplicationForm
from .identity_service import IdentityGate, TokenIdentityProvider
from .list_view import ListViewState, filter_applications
from .statistics_service import summarize
from .storage_service import StorageService
from .upload_service import UploadTask, simulated_progress

__all__ = [
    "ApplicationService",
    "ApplicationDashboard",
    "ApplicationForm",
    "IdentityGate",
    "TokenIdentityProvider",
    "ListViewState",
    "filter_applications",
    "summarize",
    "StorageService",
    "UploadTask",
    "simulated_progress",
]
