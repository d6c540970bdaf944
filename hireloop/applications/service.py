"""Application service — every mutation of an Application goes through here.

Enforces the transition table in hireloop.status plus role/ownership
rules, and triggers the transactional emails. Errors from
hireloop.errors propagate to the caller unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from hireloop.applications.render import guard_against_notes_leak, render
from hireloop.errors import (
    AlreadyContacted,
    AmbiguousJob,
    DuplicateApplication,
    Forbidden,
    InvalidTransition,
    NoPublishedJobs,
    NotFound,
    StatusInvariantError,
    ValidationError,
)
from hireloop.models import Application, Role
from hireloop.notifications.status_notifier import StatusNotifier
from hireloop.status import (
    NOTIFY_STATUSES,
    ApplicationStatus,
    is_terminal,
    parse_status,
    status_priority,
    validate_transition,
)
from hireloop.storage.applications import ApplicationStore
from hireloop.storage.directory import JobDirectory, UserDirectory
from hireloop.utils.dates import utcnow
from hireloop.utils.text_processing import sanitize_cover_note

logger = logging.getLogger("hireloop.applications")


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: Role
    name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class ApplicationService:
    def __init__(
        self,
        store: ApplicationStore,
        users: UserDirectory,
        jobs: JobDirectory,
        notifier: StatusNotifier | None = None,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.users = users
        self.jobs = jobs
        self.notifier = notifier
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def view(self, app_id: int, actor: Actor) -> dict:
        """Role-gated projection of one application. Never mutates."""
        application = self._load_for(app_id, actor)
        return self.render_for(application, actor)

    def render_for(self, application: Application, actor: Actor) -> dict:
        notes_enabled = True
        if actor.role == Role.RECRUITER:
            notes_enabled = self.users.notes_enabled(actor.user_id)
        return guard_against_notes_leak(render(application, actor.role, notes_enabled), actor.role)

    def record_first_view(self, app_id: int, actor: Actor) -> bool:
        """Stamp the recruiter's first view and move ``applied`` to ``viewed``.

        Returns True if anything changed. Admin and job seeker views, and any
        view after ``viewed_at`` is set, are no-ops.
        """
        application = self._load_for(app_id, actor)
        if actor.role != Role.RECRUITER or application.viewed_at is not None:
            return False

        application.viewed_at = self.clock()
        if application.status == ApplicationStatus.APPLIED:
            error = validate_transition(ApplicationStatus.APPLIED, ApplicationStatus.VIEWED)
            if error:
                logger.warning("Unexpected transition error on first view of %s: %s", app_id, error)
            else:
                application.status = ApplicationStatus.VIEWED
        self.store.save(application)
        logger.info("Application %s first viewed by recruiter %s", app_id, actor.user_id)
        return True

    def list_for_actor(self, actor: Actor) -> list[dict]:
        """Default listing: hides what this actor archived."""
        if actor.role == Role.JOB_SEEKER:
            rows = self.store.find_all(candidate_id=actor.user_id, archived_by_job_seeker=False)
        elif actor.role == Role.RECRUITER:
            rows = self.store.find_all(recruiter_id=actor.user_id, archived_by_recruiter=False, published=True)
        else:
            rows = self.store.find_all(archived_by_admin=False)
        return [self.render_for(row, actor) for row in rows]

    # ------------------------------------------------------------------
    # Candidate-initiated
    # ------------------------------------------------------------------

    def apply(self, job_id: int, actor: Actor, cover_note: str | None = None) -> Application:
        if actor.role != Role.JOB_SEEKER:
            raise Forbidden("Only job seekers can apply to jobs")
        try:
            cover_note = sanitize_cover_note(cover_note)
        except TypeError as e:
            raise ValidationError(str(e)) from None

        job = self.jobs.get(job_id)
        if job is None or not job.published:
            raise NotFound("Job not found")

        candidate_id = actor.user_id
        if self.store.find_one(job_id=job_id, candidate_id=candidate_id, archived_by_job_seeker=False):
            raise DuplicateApplication()

        now = self.clock()
        general_contact = self.store.find_one(
            recruiter_id=job.recruiter_id,
            candidate_id=candidate_id,
            job_id=None,
            archived_by_job_seeker=False,
        )
        archived = self.store.find_one(job_id=job_id, candidate_id=candidate_id, archived_by_job_seeker=True)

        if general_contact is not None and archived is None:
            # The only case where an existing record takes on a new job identity
            application = general_contact
            application.job_id = job_id
            application.status = ApplicationStatus.APPLIED
            application.applied_at = now
            application.last_activity_at = now
            if cover_note is not None:
                application.cover_note = cover_note
            logger.info("Promoted general contact %s to application for job %s", application.id, job_id)
        elif archived is not None:
            application = archived
            application.archived_by_job_seeker = False
            application.status = ApplicationStatus.APPLIED
            application.applied_at = now
            application.last_activity_at = now
            application.withdrawn_at = None
            if cover_note is not None:
                application.cover_note = cover_note
            logger.info("Restored archived application %s for job %s", application.id, job_id)
        else:
            application = Application(
                job_id=job_id,
                recruiter_id=job.recruiter_id,
                candidate_id=candidate_id,
                status=ApplicationStatus.APPLIED,
                applied_at=now,
                last_activity_at=now,
                cover_note=cover_note,
            )

        self.store.save(application)
        logger.info("Candidate %s applied to job %s (application %s)", candidate_id, job_id, application.id)

        if self.notifier:
            self.notifier.candidate_applied(application)
        return application

    def withdraw(self, app_id: int, actor: Actor) -> Application:
        if actor.role != Role.JOB_SEEKER:
            raise Forbidden("Only the candidate can withdraw an application")
        application = self._load_for(app_id, actor)

        current = ApplicationStatus(application.status)
        error = validate_transition(current, ApplicationStatus.WITHDRAWN)
        if error:
            raise InvalidTransition(error, current.value)

        self._apply_status(application, ApplicationStatus.WITHDRAWN)
        self.store.save(application)
        logger.info("Application %s withdrawn by candidate %s", app_id, actor.user_id)

        if self.notifier:
            self.notifier.application_withdrawn(application)
        return application

    # ------------------------------------------------------------------
    # Recruiter/admin-initiated
    # ------------------------------------------------------------------

    def contact(self, candidate_id: int, actor: Actor, job_id: int | None = None) -> Application:
        """Recruiter reaches out to a candidate. The result is always ``contacted``."""
        if actor.role not in (Role.RECRUITER, Role.ADMIN):
            raise Forbidden("Only recruiters can contact candidates")

        candidate = self.users.get_user(candidate_id)
        if candidate is None or candidate.role != Role.JOB_SEEKER.value:
            raise NotFound("Candidate not found")

        recruiter_id = actor.user_id
        final_job_id = self._resolve_contact_job(recruiter_id, job_id)

        existing = self.store.find_one(recruiter_id=recruiter_id, candidate_id=candidate_id)
        if existing is not None:
            current = ApplicationStatus(existing.status)
            if is_terminal(current) or status_priority(current) > status_priority(ApplicationStatus.CONTACTED):
                raise AlreadyContacted(current_status=current.value)

            was_contacted = current == ApplicationStatus.CONTACTED
            existing.status = ApplicationStatus.CONTACTED
            existing.last_activity_at = self.clock()
            if final_job_id and existing.job_id is None:
                existing.job_id = final_job_id
            self._assert_contacted(existing)
            application = self._save_contact(existing)
            changed = not was_contacted
        else:
            now = self.clock()
            application = Application(
                job_id=final_job_id,
                recruiter_id=recruiter_id,
                candidate_id=candidate_id,
                status=ApplicationStatus.CONTACTED,
                applied_at=now,
                last_activity_at=now,
            )
            self._assert_contacted(application)
            application = self._save_contact(application)
            changed = True

        logger.info(
            "Recruiter %s contacted candidate %s (application %s, job %s)",
            recruiter_id, candidate_id, application.id, application.job_id,
        )
        if changed and self.notifier:
            self.notifier.recruiter_contacted(application)
        return application

    def change_status(
        self,
        app_id: int,
        actor: Actor,
        new_status: ApplicationStatus | str,
        notes: str | None = None,
    ) -> Application:
        if actor.role not in (Role.RECRUITER, Role.ADMIN):
            raise Forbidden("Only recruiters and admins can change application status")
        try:
            target = parse_status(new_status)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        application = self._load_for(app_id, actor)
        current = ApplicationStatus(application.status)

        if target == ApplicationStatus.WITHDRAWN:
            raise InvalidTransition(
                "Cannot set status to withdrawn via this endpoint. Job seekers must use the withdraw endpoint.",
                current.value,
            )
        error = validate_transition(current, target)
        if error:
            raise InvalidTransition(error, current.value)
        if notes is not None:
            self._check_recruiter_notes(actor, notes)

        status_changed = current != target
        if status_changed:
            self._apply_status(application, target)
            if actor.is_admin:
                application.log_admin_action(
                    actor.user_id,
                    self._admin_name(actor),
                    "status_changed",
                    f'Status changed from "{current.value}" to "{target.value}"',
                )

        if notes is not None:
            application.recruiter_notes = notes
            application.last_activity_at = self.clock()

        if status_changed or notes is not None:
            self.store.save(application)

        if status_changed:
            logger.info("Application %s: %s -> %s by %s %s", app_id, current.value, target.value, actor.role.value, actor.user_id)
            if target in NOTIFY_STATUSES and self.notifier:
                self.notifier.status_changed(application)
        return application

    def update_notes(
        self,
        app_id: int,
        actor: Actor,
        recruiter_notes: str | None = None,
        admin_notes: str | None = None,
    ) -> Application:
        if actor.role == Role.JOB_SEEKER:
            raise Forbidden()
        if recruiter_notes is None and admin_notes is None:
            raise ValidationError("Either recruiter_notes or admin_notes must be provided")

        if admin_notes is not None:
            if not actor.is_admin:
                raise Forbidden("Only admins can update admin notes")
            if not isinstance(admin_notes, str):
                raise ValidationError("admin_notes must be a string")
        if recruiter_notes is not None:
            self._check_recruiter_notes(actor, recruiter_notes)

        application = self._load_for(app_id, actor)

        if admin_notes is not None:
            if admin_notes != (application.admin_notes or ""):
                application.log_admin_action(
                    actor.user_id, self._admin_name(actor), "admin_notes_updated", "Admin notes updated"
                )
            application.admin_notes = admin_notes

        if recruiter_notes is not None:
            application.recruiter_notes = recruiter_notes

        application.last_activity_at = self.clock()
        self.store.save(application)
        return application

    def set_published(self, app_id: int, actor: Actor, published: bool) -> Application:
        """Dashboard visibility toggle. Not an activity: status and timestamps are untouched."""
        if actor.role not in (Role.RECRUITER, Role.ADMIN):
            raise Forbidden()
        if not isinstance(published, bool):
            raise ValidationError("published must be a boolean")
        application = self._load_for(app_id, actor)
        if application.published != published:
            application.published = published
            self.store.save(application)
        return application

    def archive(self, app_id: int, actor: Actor, archived: bool) -> Application:
        """Toggle the caller's own archive flag; the other roles' flags are untouched."""
        application = self._load_for(app_id, actor)
        archived = bool(archived)

        if actor.role == Role.JOB_SEEKER:
            field = "archived_by_job_seeker"
        elif actor.role == Role.RECRUITER:
            field = "archived_by_recruiter"
        else:
            field = "archived_by_admin"

        if getattr(application, field) == archived:
            return application

        setattr(application, field, archived)
        if actor.is_admin:
            application.last_activity_at = self.clock()
            application.log_admin_action(
                actor.user_id,
                self._admin_name(actor),
                "archived" if archived else "unarchived",
                "Application archived by admin (soft delete)" if archived else "Application unarchived by admin",
            )
        self.store.save(application)
        logger.info("Application %s %s by %s %s", app_id, "archived" if archived else "unarchived", actor.role.value, actor.user_id)
        return application

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_for(self, app_id: int, actor: Actor) -> Application:
        application = self.store.get(app_id)
        if actor.role == Role.ADMIN:
            return application
        if actor.role == Role.RECRUITER and application.recruiter_id == actor.user_id:
            return application
        if actor.role == Role.JOB_SEEKER and application.candidate_id == actor.user_id:
            return application
        raise Forbidden()

    def _resolve_contact_job(self, recruiter_id: int, job_id: int | None) -> int:
        if job_id is None:
            published = self.jobs.list_published(recruiter_id)
            if not published:
                raise NoPublishedJobs()
            if len(published) > 1:
                raise AmbiguousJob(jobs=[job.to_summary() for job in published])
            return published[0].id

        job = self.jobs.get(job_id)
        if job is None:
            raise NotFound("Job not found")
        if job.recruiter_id != recruiter_id:
            raise Forbidden("You do not own this job")
        return job.id

    def _save_contact(self, application: Application) -> Application:
        try:
            return self.store.save(application)
        except DuplicateApplication:
            raise AlreadyContacted() from None

    @staticmethod
    def _assert_contacted(application: Application) -> None:
        # "applied" means candidate-initiated; a contact must never persist it
        if application.status != ApplicationStatus.CONTACTED:
            raise StatusInvariantError(
                f'Recruiter contact must persist status "contacted", got "{application.status}"'
            )

    def _apply_status(self, application: Application, status: ApplicationStatus) -> None:
        now = self.clock()
        application.status = status
        application.last_activity_at = now
        if status == ApplicationStatus.WITHDRAWN:
            application.withdrawn_at = now

    def _check_recruiter_notes(self, actor: Actor, notes) -> None:
        if not isinstance(notes, str):
            raise ValidationError("recruiter_notes must be a string")
        if actor.role == Role.RECRUITER and not self.users.notes_enabled(actor.user_id):
            raise Forbidden(
                "Internal notes feature is not available for your account. "
                "Please contact support to enable this feature."
            )

    def _admin_name(self, actor: Actor) -> str:
        if actor.name:
            return actor.name
        user = self.users.get_user(actor.user_id)
        return user.name if user and user.name else "Unknown Admin"
