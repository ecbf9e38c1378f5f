from __future__ import annotations

from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

registry = CollectorRegistry(auto_describe=True)

CANVAS_SAVES_TOTAL = Counter(
    "canvas_saves_total",
    "Number of successful canvas saves.",
    registry=registry,
)

PERMISSION_CHECKS_TOTAL = Counter(
    "canvas_permission_checks_total",
    "Permission checks partitioned by required level and outcome.",
    ["required", "outcome"],
    registry=registry,
)

ASSET_UPLOADS_REQUESTED_TOTAL = Counter(
    "canvas_asset_uploads_requested_total",
    "Presigned upload URLs issued, by MIME type.",
    ["file_type"],
    registry=registry,
)

STORAGE_DELETE_FAILURES_TOTAL = Counter(
    "canvas_storage_delete_failures_total",
    "Remote object deletes that failed, by calling operation.",
    ["operation"],
    registry=registry,
)

ORPHAN_ASSETS_DELETED_TOTAL = Counter(
    "canvas_orphan_assets_deleted_total",
    "Assets removed by orphan cleanup.",
    registry=registry,
)

STORAGE_CALL_DURATION = Histogram(
    "canvas_storage_call_duration_seconds",
    "Latency for object storage calls per operation.",
    ["operation"],
    registry=registry,
)


@contextmanager
def track_storage_call(operation: str):
    with STORAGE_CALL_DURATION.labels(operation=operation).time():
        yield


def record_canvas_save() -> None:
    CANVAS_SAVES_TOTAL.inc()


def record_permission_check(required: str, outcome: str) -> None:
    PERMISSION_CHECKS_TOTAL.labels(required=required, outcome=outcome).inc()


def record_upload_requested(file_type: str) -> None:
    ASSET_UPLOADS_REQUESTED_TOTAL.labels(file_type=file_type).inc()


def record_storage_delete_failure(operation: str) -> None:
    STORAGE_DELETE_FAILURES_TOTAL.labels(operation=operation).inc()


def record_orphans_deleted(count: int) -> None:
    if count:
        ORPHAN_ASSETS_DELETED_TOTAL.inc(count)


def get_metrics_payload() -> bytes:
    return generate_latest(registry)
