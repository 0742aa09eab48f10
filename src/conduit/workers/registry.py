"""Worker registry mapping job kinds to worker classes."""

from conduit.workers.base import BaseWorker, WorkerDependencies


def _build_registry() -> dict[str, type[BaseWorker]]:
    from conduit.workers.analytics_worker import GenerateReportWorker, TrackEventWorker
    from conduit.workers.billing_worker import RetryPaymentWorker
    from conduit.workers.cleanup_worker import CleanupOldDataWorker
    from conduit.workers.datalayer_event_worker import DataLayerEventWorker
    from conduit.workers.datasync_worker import SyncDataWorker
    from conduit.workers.email_worker import SubscriptionExpiryWorker, WelcomeEmailWorker

    workers = (
        WelcomeEmailWorker,
        SubscriptionExpiryWorker,
        RetryPaymentWorker,
        SyncDataWorker,
        TrackEventWorker,
        GenerateReportWorker,
        CleanupOldDataWorker,
        DataLayerEventWorker,
    )
    return {cls.job_kind: cls for cls in workers}


_registry: dict[str, type[BaseWorker]] = {}


def _ensure_registry() -> None:
    if not _registry:
        _registry.update(_build_registry())


def register_worker(job_kind: str, worker_class: type[BaseWorker]) -> None:
    """Register a worker class for a job kind."""
    _ensure_registry()
    _registry[job_kind] = worker_class


def get_worker_class(job_kind: str) -> type[BaseWorker] | None:
    _ensure_registry()
    return _registry.get(job_kind)


def build_workers(deps: WorkerDependencies) -> list[BaseWorker]:
    """Instantiate every registered worker with the shared dependencies."""
    _ensure_registry()
    return [cls(deps) for cls in _registry.values()]
