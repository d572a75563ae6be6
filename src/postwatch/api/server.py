"""FastAPI HTTP server: Drive webhook, channel teardown and health."""

import logging

from postwatch import __version__
from postwatch.core.dispatcher import Notification, NotificationDispatcher
from postwatch.core.lifecycle import LifecycleController
from postwatch.core.registry import Registry

log = logging.getLogger(__name__)


def create_app(
    registry: Registry,
    dispatcher: NotificationDispatcher,
    controller: LifecycleController,
):
    """Create and configure the FastAPI application.

    Args:
        registry: Fully built registry; the app never adds entries to it.
        dispatcher: Handles ``POST /api`` webhooks.
        controller: Handles ``POST /api/stop``.
    """
    try:
        from fastapi import BackgroundTasks, FastAPI, Request, Response
        from fastapi.concurrency import run_in_threadpool
        from fastapi.responses import JSONResponse
    except ImportError as e:
        raise ImportError(
            "FastAPI is required for the webhook server. "
            "Install with: pip install postwatch"
        ) from e

    app = FastAPI(
        title="postwatch",
        description="Republish Google Drive posts on change",
        version=__version__,
    )

    # dispatch() blocks for the length of a refresh; run it in the thread pool.
    @app.post("/api")
    async def notification_endpoint(request: Request):
        body = await request.body()
        notification = Notification.from_headers(request.headers, body)

        outcome = await run_in_threadpool(dispatcher.dispatch, notification)
        log.debug("Dispatch outcome for channel %s: %s",
                  notification.channel_id, outcome.value)
        return Response(status_code=200)

    @app.post("/api/stop")
    def stop_endpoint(background_tasks: BackgroundTasks):
        log.info("Received request to stop all listener channels")
        # Scheduled first so the process exits even when teardown raises.
        background_tasks.add_task(controller.exit)
        try:
            report = controller.stop_all()
        except Exception:
            log.error("Channel teardown failed", exc_info=True)
            return JSONResponse(status_code=500, content={"detail": "Teardown failed"})
        return JSONResponse(
            status_code=200 if report.ok else 500,
            content={
                "attempted": report.attempted,
                "failed": len(report.failed),
            },
        )

    @app.get("/api/health")
    def health():
        data = registry.health()
        data["version"] = __version__
        return data

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        log.error("Unhandled error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app
