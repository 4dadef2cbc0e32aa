"""
FastAPI Application — notification processing endpoint + status API.

Provides:
- Cron-triggered batch processing (POST /api/notifications/process)
- Health probes for the scheduler and load balancer
- Job status lookup for operators
- Per-user notification preferences
"""
from __future__ import annotations

import hmac
import structlog
from contextlib import asynccontextmanager
from typing import Optional

# Load .env before any config is read
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.bootstrap import Services, build_services
from models.schemas import NotificationPreferencesUpdate

logger = structlog.get_logger()

HEALTH_PAYLOAD = {"status": "ok", "service": "notification-processor"}


def _authorized(request: Request, secret: str) -> bool:
    """Bearer check against the cron secret. An unset secret rejects everything."""
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return hmac.compare_digest(header.encode("utf-8"), f"Bearer {secret}".encode("utf-8"))


def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await services.startup()
        logger.info("notification_api_started", app_url=services.settings.app.url)
        yield
        await services.shutdown()
        logger.info("notification_api_stopped")

    app = FastAPI(
        title="ForgeSpace Notifications API",
        description="Queued email notifications for ForgeSpace workspaces",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def require_cron_secret(request: Request):
        if not _authorized(request, services.settings.app.cron_secret):
            raise HTTPException(status_code=401, detail="Unauthorized")

    # ══════════════════════════════════════════════════════════
    #  HEALTH
    # ══════════════════════════════════════════════════════════

    @app.get("/health")
    async def health():
        return HEALTH_PAYLOAD

    @app.get("/api/notifications/process")
    async def process_health():
        return HEALTH_PAYLOAD

    # ══════════════════════════════════════════════════════════
    #  PROCESSING
    # ══════════════════════════════════════════════════════════

    @app.post("/api/notifications/process")
    async def process_notifications(request: Request):
        if not _authorized(request, services.settings.app.cron_secret):
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        try:
            report = await services.queue.process_pending_jobs()
        except Exception as e:
            logger.error("notification_processing_failed", error=str(e))
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to process notifications"},
            )

        return {
            "success": True,
            "message": "Notification jobs processed",
            "report": report.to_dict(),
        }

    @app.get("/api/notifications/jobs/{job_id}")
    async def job_status(job_id: str, request: Request):
        require_cron_secret(request)
        job = await services.queue.get_job_status(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job.model_dump(mode="json")

    @app.get("/api/notifications/transport")
    async def transport_health(request: Request):
        require_cron_secret(request)
        return await services.transport.health_check()

    # ══════════════════════════════════════════════════════════
    #  PREFERENCES
    # ══════════════════════════════════════════════════════════

    @app.get("/api/notifications/preferences/{user_id}")
    async def get_preferences(user_id: str):
        prefs = await services.preferences.get_preferences(user_id)
        return prefs.model_dump()

    @app.put("/api/notifications/preferences/{user_id}")
    async def update_preferences(user_id: str, req: NotificationPreferencesUpdate):
        prefs = await services.preferences.update_preferences(user_id, req)
        return prefs.model_dump()

    @app.get("/api/notifications/log/{user_id}")
    async def notification_log(
        user_id: str,
        request: Request,
        limit: int = Query(50, ge=1, le=500),
    ):
        require_cron_secret(request)
        entries = await services.preferences.recent_notifications(user_id, limit=limit)
        return {"user_id": user_id, "entries": entries}

    return app


app = create_app()


# ══════════════════════════════════════════════════════════════
#  Entry Point
# ══════════════════════════════════════════════════════════════

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
