"""Transactional emails for application events — applied, contacted, status changed, withdrawn.

Best effort: a failed lookup or send is logged and never fails the request
that triggered it.
"""

import logging

from hireloop.models import Application
from hireloop.notifications.email_sender import EmailCategory
from hireloop.notifications.templates import (
    RenderedEmail,
    render_application_withdrawn_email,
    render_candidate_applied_email,
    render_recruiter_contacted_email,
    render_status_changed_email,
)
from hireloop.status import NOTIFY_STATUSES, ApplicationStatus
from hireloop.storage.directory import JobDirectory, UserDirectory

logger = logging.getLogger("hireloop.notifications")


class StatusNotifier:
    def __init__(self, sender, users: UserDirectory, jobs: JobDirectory, base_url: str):
        self.sender = sender
        self.users = users
        self.jobs = jobs
        self.base_url = base_url

    def candidate_applied(self, application: Application) -> bool:
        """Tell the recruiter a candidate applied."""
        return self._notify(
            application,
            event="candidate_applied",
            recipient_id=application.recruiter_id,
            build=lambda candidate, recruiter, job: render_candidate_applied_email(
                candidate_name=candidate[0],
                recruiter_name=recruiter[0],
                applied_at=application.applied_at,
                base_url=self.base_url,
                job_title=job.title if job else None,
                job_company=job.company if job else None,
                job_city=job.city if job else None,
                cover_note=application.cover_note,
            ),
        )

    def recruiter_contacted(self, application: Application) -> bool:
        """Tell the candidate a recruiter reached out."""
        return self._notify(
            application,
            event="recruiter_contacted",
            recipient_id=application.candidate_id,
            build=lambda candidate, recruiter, job: render_recruiter_contacted_email(
                candidate_name=candidate[0],
                recruiter_name=recruiter[0],
                base_url=self.base_url,
                job_title=job.title if job else None,
                job_company=job.company if job else None,
                job_city=job.city if job else None,
            ),
        )

    def status_changed(self, application: Application) -> bool:
        """Tell the candidate about a recruiter-driven status change."""
        status = ApplicationStatus(application.status)
        if status not in NOTIFY_STATUSES:
            logger.debug("Status %s does not notify (application %s)", status.value, application.id)
            return False
        return self._notify(
            application,
            event="status_changed",
            recipient_id=application.candidate_id,
            extra_tags=[{"name": "status", "value": status.value}],
            build=lambda candidate, recruiter, job: render_status_changed_email(
                candidate_name=candidate[0],
                status=status.value,
                base_url=self.base_url,
                job_title=job.title if job else None,
                job_company=job.company if job else None,
            ),
        )

    def application_withdrawn(self, application: Application) -> bool:
        """Tell the recruiter the candidate withdrew."""
        return self._notify(
            application,
            event="application_withdrawn",
            recipient_id=application.recruiter_id,
            build=lambda candidate, recruiter, job: render_application_withdrawn_email(
                candidate_name=candidate[0],
                recruiter_name=recruiter[0],
                base_url=self.base_url,
                job_title=job.title if job else None,
                job_company=job.company if job else None,
            ),
        )

    def _notify(self, application, event, recipient_id, build, extra_tags=None) -> bool:
        try:
            candidate = self.users.get_name_and_email(application.candidate_id)
            recruiter = self.users.get_name_and_email(application.recruiter_id)
            job = self.jobs.get(application.job_id) if application.job_id else None
            to = candidate[1] if recipient_id == application.candidate_id else recruiter[1]
            if not to:
                logger.warning("No email address for user %s, skipping %s email", recipient_id, event)
                return False

            email: RenderedEmail = build(candidate, recruiter, job)
            result = self.sender.send(
                to=to,
                subject=email.subject,
                html=email.html,
                text=email.text,
                category=EmailCategory.IMPORTANT_TRANSACTIONAL,
                tags=[{"name": "type", "value": "application"}, {"name": "event", "value": event}]
                + (extra_tags or []),
            )
            if not result.success:
                logger.error("Failed to send %s email for application %s: %s", event, application.id, result.error)
            return result.success
        except Exception as e:
            logger.error("Failed to send %s email for application %s: %s", event, application.id, e)
            return False
