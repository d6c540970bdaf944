"""Application routes — thin JSON wrappers over ApplicationService.

Every response body goes through ``ApplicationService.render_for`` so the
role-based field whitelist and the notes-leak guard apply everywhere.
"""

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from hireloop.applications.service import Actor, ApplicationService
from hireloop.errors import ApplicationError, ValidationError
from hireloop.status import allowed_next, describe_transitions, is_terminal, parse_status

from .dependencies import get_current_actor, get_service

router = APIRouter(prefix="/applications")


class ApplyRequest(BaseModel):
    job_id: int
    cover_note: str | None = None


class ContactRequest(BaseModel):
    candidate_id: int
    job_id: int | None = None


class StatusRequest(BaseModel):
    status: str
    notes: str | None = None


class NotesRequest(BaseModel):
    recruiter_notes: str | None = None
    admin_notes: str | None = None


class ArchiveRequest(BaseModel):
    archived: bool


class PublishRequest(BaseModel):
    published: bool


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError):
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@router.get("")
def list_applications(
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    return {"applications": service.list_for_actor(actor)}


@router.get("/transitions/{status}")
def transitions(status: str):
    """Pre-flight info for clients; backed by the same table the service enforces."""
    try:
        current = parse_status(status)
    except ValueError as e:
        raise ValidationError(str(e)) from None
    return {
        "status": current.value,
        "terminal": is_terminal(current),
        "allowed": sorted(s.value for s in allowed_next(current)),
        "description": describe_transitions(current),
    }


@router.get("/{app_id}")
def get_application(
    app_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    service.record_first_view(app_id, actor)
    return {"application": service.view(app_id, actor)}


@router.post("", status_code=201)
def apply(
    body: ApplyRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.apply(body.job_id, actor, cover_note=body.cover_note)
    return {"message": "Application submitted successfully", "application": service.render_for(application, actor)}


@router.post("/contact", status_code=201)
def contact(
    body: ContactRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.contact(body.candidate_id, actor, job_id=body.job_id)
    return {"message": "Candidate contacted successfully", "application": service.render_for(application, actor)}


@router.patch("/{app_id}/status")
def change_status(
    app_id: int,
    body: StatusRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.change_status(app_id, actor, body.status, notes=body.notes)
    return {"message": "Application updated successfully", "application": service.render_for(application, actor)}


@router.post("/{app_id}/withdraw")
def withdraw(
    app_id: int,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.withdraw(app_id, actor)
    return {"message": "Application withdrawn successfully", "application": service.render_for(application, actor)}


@router.post("/{app_id}/archive")
def archive(
    app_id: int,
    body: ArchiveRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.archive(app_id, actor, body.archived)
    message = "Application archived successfully" if body.archived else "Application unarchived successfully"
    return {"message": message, "application": service.render_for(application, actor)}


@router.patch("/{app_id}/notes")
def update_notes(
    app_id: int,
    body: NotesRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.update_notes(
        app_id, actor, recruiter_notes=body.recruiter_notes, admin_notes=body.admin_notes
    )
    return {"message": "Notes updated successfully", "application": service.render_for(application, actor)}


@router.post("/{app_id}/publish")
def set_published(
    app_id: int,
    body: PublishRequest,
    actor: Actor = Depends(get_current_actor),
    service: ApplicationService = Depends(get_service),
):
    application = service.set_published(app_id, actor, body.published)
    return {"application": service.render_for(application, actor)}
