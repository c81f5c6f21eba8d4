"""
NotuBiz event sync feature package.

Every layer of the NotuBiz -> Woo publication sync lives here: domain
models, the fetch/map/reconcile pipeline, the object store, services,
the scheduled job and the HTTP routes.
"""

from .api.router import router as event_sync_router  # noqa: F401
from .domain.models import NotificationOutcome, SyncRunResult, SyncScope  # noqa: F401
from .jobs.sync_job import start_notubiz_sync_scheduler  # noqa: F401
from .services.notification_service import notification_service  # noqa: F401
from .services.sync_service import event_sync_service  # noqa: F401
