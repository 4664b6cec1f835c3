import logging
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

link_access_outcomes = Counter(
    "link_access_outcomes_total", "Link access evaluations by mode and outcome", ["mode", "outcome"]
)
sweep_runs = Counter("link_sweep_runs_total", "Lifecycle sweep runs")
sweep_links_deactivated = Counter("link_sweep_deactivated_total", "Links deactivated by the sweep")
sweep_links_purged = Counter("link_sweep_purged_total", "Inactive links permanently deleted")
sweep_failures = Counter("link_sweep_failures_total", "Sweep runs that raised")
sweep_duration = Histogram("link_sweep_duration_seconds", "Duration of a sweep run in seconds")


def report_access(mode: str, outcome: str) -> None:
    link_access_outcomes.labels(mode=mode, outcome=outcome).inc()


def report_sweep(deactivated: int, purged: int, duration: float) -> None:
    """Record sweep metrics to Prometheus."""
    sweep_runs.inc()
    if deactivated:
        sweep_links_deactivated.inc(deactivated)
    if purged:
        sweep_links_purged.inc(purged)
    sweep_duration.observe(duration)


def report_sweep_failure() -> None:
    sweep_failures.inc()


def setup_monitoring(app: ASGIApp):
    Instrumentator().instrument(app).expose(app, endpoint="/api/metrics", include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
