"""Cron trigger for the job-alert dispatcher (for hosts that call an HTTP endpoint on a timer)."""

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from hireloop.config import AppConfig
from hireloop.dispatch.run import DispatchAlreadyRunning, run_dispatch

from .dependencies import get_config, get_session_factory

logger = logging.getLogger("hireloop.web.cron")

router = APIRouter(prefix="/cron")


def _authorized(request: Request, secret: str) -> bool:
    if not secret:
        return False
    header = request.headers.get("authorization", "")
    return hmac.compare_digest(header, f"Bearer {secret}")


@router.get("/job-alerts")
def job_alerts(
    request: Request,
    config: AppConfig = Depends(get_config),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    if not _authorized(request, config.web.cron_secret):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    logger.info("Cron job-alert run starting")
    try:
        summary = run_dispatch(
            config=config,
            session_factory=session_factory,
            sender=request.app.state.email_sender,
        )
    except DispatchAlreadyRunning as e:
        return JSONResponse({"error": str(e)}, status_code=409)
    except Exception as e:
        logger.error("Cron job-alert run failed: %s", e, exc_info=True)
        return JSONResponse({"error": str(e) or "Internal server error"}, status_code=500)

    return {"message": "Job alerts processed", **summary.to_dict()}
