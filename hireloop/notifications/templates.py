"""Email templates (Jinja2) for job alerts and application events.

Every renderer returns a RenderedEmail with subject, HTML and plain-text
bodies. HTML templates are autoescaped; text templates are not.
"""

from dataclasses import dataclass
from datetime import datetime

from jinja2 import DictLoader, Environment, select_autoescape

from hireloop.utils.text_processing import truncate

_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><meta name="viewport" content="width=device-width, initial-scale=1.0"></head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background-color: #f5f5f5; margin: 0; padding: 20px; color: #333;">
  <div style="max-width: 640px; margin: 0 auto; background: #fff; border-radius: 8px; overflow: hidden;">
    <div style="background: #1a73e8; color: #fff; padding: 24px; text-align: center;">
      <h1 style="margin: 0; font-size: 22px;">{% block heading %}{% endblock %}</h1>
    </div>
    <div style="padding: 24px;">
      {% block content %}{% endblock %}
    </div>
    <div style="background: #fafafa; padding: 16px 24px; text-align: center; font-size: 12px; color: #999; border-top: 1px solid #eee;">
      {% block footer %}Sent by Hireloop{% endblock %}
    </div>
  </div>
</body>
</html>"""

_TEMPLATES = {
    "layout.html": _LAYOUT,
    "job_alert.html": """{% extends "layout.html" %}
{% block heading %}New jobs matching {% if search_name %}"{{ search_name }}"{% else %}your search{% endif %}{% endblock %}
{% block content %}
<p>Hello {{ user_name }},</p>
<p>We found {{ jobs|length }} new {{ "job" if jobs|length == 1 else "jobs" }} that match your saved search.</p>
{% for job in jobs %}
<div style="border: 1px solid #e0e0e0; border-radius: 8px; padding: 16px; margin-bottom: 16px;">
  {% if job.featured %}<div style="background: #f59e0b; color: #fff; padding: 2px 8px; border-radius: 4px; display: inline-block; font-size: 12px; margin-bottom: 8px;">Featured</div>{% endif %}
  <div style="font-size: 16px; font-weight: 600;"><a href="{{ job.url }}" style="color: #1a73e8; text-decoration: none;">{{ job.title }}</a></div>
  <div style="font-size: 14px; color: #555;">{{ job.company }}</div>
  <div style="font-size: 13px; color: #777;">{{ job.city }}{% if job.country %}, {{ job.country }}{% endif %}{% if job.job_type %} &middot; {{ job.job_type|capitalize }}{% endif %}{% if job.created_at %} &middot; Posted {{ job.created_at.strftime("%b %d, %Y") }}{% endif %}</div>
  {% if job.description %}<div style="font-size: 13px; color: #555; margin-top: 8px;">{{ job.description|preview }}</div>{% endif %}
</div>
{% endfor %}
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">Manage your saved searches</a></p>
{% endblock %}
{% block footer %}This is a {{ frequency }} job alert. You're receiving this because you have an active saved search on Hireloop.{% endblock %}""",
    "job_alert.txt": """New jobs matching your search

Hello {{ user_name }},

We found {{ jobs|length }} new {{ "job" if jobs|length == 1 else "jobs" }} that match your saved search{% if search_name %} "{{ search_name }}"{% endif %}.
{% for job in jobs %}
{% if job.featured %}FEATURED
{% endif %}{{ job.title }}
{{ job.company }}
{{ job.city }}{% if job.country %}, {{ job.country }}{% endif %}
{% if job.description %}
{{ job.description|preview }}
{% endif %}
View job: {{ job.url }}
{% if not loop.last %}---{% endif %}
{% endfor %}
Manage your saved searches: {{ dashboard_url }}

This is a {{ frequency }} job alert. You're receiving this because you have an active saved search on Hireloop.""",
    "heartbeat.html": """{% extends "layout.html" %}
{% block heading %}Your job search is still active{% endblock %}
{% block content %}
<p>Hello {{ user_name }},</p>
<p>Your saved search{% if search_name %} "{{ search_name }}"{% endif %} is still active. There are no new matching jobs yet, but we keep checking and will email you as soon as something turns up.</p>
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">Review or adjust your saved searches</a></p>
{% endblock %}
{% block footer %}You're receiving this monthly update because you have an active saved search on Hireloop. You can disable job alerts in your email preferences.{% endblock %}""",
    "heartbeat.txt": """Your job search is still active

Hello {{ user_name }},

Your saved search{% if search_name %} "{{ search_name }}"{% endif %} is still active. There are no new matching jobs yet, but we keep checking and will email you as soon as something turns up.

Review or adjust your saved searches: {{ dashboard_url }}

You're receiving this monthly update because you have an active saved search on Hireloop.""",
    "status_changed.html": """{% extends "layout.html" %}
{% block heading %}Application update: {{ status_label }}{% endblock %}
{% block content %}
<p>Hello {{ candidate_name }},</p>
<p>Your application{% if job_title %} for <strong>{{ job_title }}</strong>{% if job_company %} at {{ job_company }}{% endif %}{% endif %} has been updated.</p>
<p><span style="background: {{ status_color }}; color: #fff; padding: 4px 10px; border-radius: 12px; font-size: 13px;">{{ status_label }}</span></p>
<p>{{ status_message }}</p>
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">View your applications</a></p>
{% endblock %}""",
    "status_changed.txt": """Application update: {{ status_label }}

Hello {{ candidate_name }},

Your application{% if job_title %} for {{ job_title }}{% if job_company %} at {{ job_company }}{% endif %}{% endif %} has been updated.

Status: {{ status_label }}

{{ status_message }}

View your applications: {{ dashboard_url }}""",
    "recruiter_contacted.html": """{% extends "layout.html" %}
{% block heading %}A recruiter wants to talk to you{% endblock %}
{% block content %}
<p>Hello {{ candidate_name }},</p>
<p>{{ recruiter_name or "A recruiter" }} has reached out to you{% if job_title %} about <strong>{{ job_title }}</strong>{% if job_company %} at {{ job_company }}{% endif %}{% if job_city %} in {{ job_city }}{% endif %}{% endif %}.</p>
<p>They may contact you directly to discuss next steps.</p>
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">View your applications</a></p>
{% endblock %}""",
    "recruiter_contacted.txt": """A recruiter wants to talk to you

Hello {{ candidate_name }},

{{ recruiter_name or "A recruiter" }} has reached out to you{% if job_title %} about {{ job_title }}{% if job_company %} at {{ job_company }}{% endif %}{% if job_city %} in {{ job_city }}{% endif %}{% endif %}.

They may contact you directly to discuss next steps.

View your applications: {{ dashboard_url }}""",
    "candidate_applied.html": """{% extends "layout.html" %}
{% block heading %}New application{% endblock %}
{% block content %}
<p>Hello {{ recruiter_name }},</p>
<p><strong>{{ candidate_name }}</strong> applied for <strong>{{ job_title or "your job posting" }}</strong>{% if job_company %} at {{ job_company }}{% endif %}{% if job_city %} in {{ job_city }}{% endif %} on {{ applied_at.strftime("%B %d, %Y") }}.</p>
{% if cover_note %}<blockquote style="border-left: 3px solid #1a73e8; margin: 16px 0; padding-left: 12px; color: #555;">{{ cover_note }}</blockquote>{% endif %}
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">Review the application</a></p>
{% endblock %}""",
    "candidate_applied.txt": """New application

Hello {{ recruiter_name }},

{{ candidate_name }} applied for {{ job_title or "your job posting" }}{% if job_company %} at {{ job_company }}{% endif %}{% if job_city %} in {{ job_city }}{% endif %} on {{ applied_at.strftime("%B %d, %Y") }}.
{% if cover_note %}
"{{ cover_note }}"
{% endif %}
Review the application: {{ dashboard_url }}""",
    "application_withdrawn.html": """{% extends "layout.html" %}
{% block heading %}Application withdrawn{% endblock %}
{% block content %}
<p>Hello {{ recruiter_name }},</p>
<p>{{ candidate_name }} has withdrawn their application for <strong>{{ job_title or "your job posting" }}</strong>{% if job_company %} at {{ job_company }}{% endif %}.</p>
<p style="font-size: 13px;"><a href="{{ dashboard_url }}">Open your dashboard</a></p>
{% endblock %}""",
    "application_withdrawn.txt": """Application withdrawn

Hello {{ recruiter_name }},

{{ candidate_name }} has withdrawn their application for {{ job_title or "your job posting" }}{% if job_company %} at {{ job_company }}{% endif %}.

Open your dashboard: {{ dashboard_url }}""",
    "test.html": """{% extends "layout.html" %}
{% block heading %}Hireloop test email{% endblock %}
{% block content %}
<p>This is a test email from Hireloop.</p>
<p>If you received this, your email configuration is working correctly.</p>
<p style="color: #999; font-size: 12px;">Sent at: {{ sent_at }}</p>
{% endblock %}""",
    "test.txt": """Hireloop test email

This is a test email from Hireloop.
If you received this, your email configuration is working correctly.

Sent at: {{ sent_at }}""",
}

STATUS_LABELS = {
    "contacted": "Contacted",
    "interviewing": "Interviewing",
    "offered": "Offer Extended",
    "rejected": "Not Selected",
}

STATUS_COLORS = {
    "contacted": "#06b6d4",
    "interviewing": "#eab308",
    "offered": "#f97316",
    "rejected": "#ef4444",
}

STATUS_MESSAGES = {
    "contacted": "The recruiter has reached out regarding your application. They may contact you directly to discuss next steps.",
    "interviewing": "Your application has progressed to the interview stage. The recruiter will contact you with details about the interview process.",
    "offered": "An offer has been extended for this position. The recruiter will contact you with details about the offer.",
    "rejected": "Thank you for your interest in this position. While this opportunity didn't work out, we encourage you to keep exploring other positions on Hireloop.",
}


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _create_jinja_env() -> Environment:
    env = Environment(
        loader=DictLoader(_TEMPLATES),
        autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=False),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["preview"] = truncate
    return env


_env = _create_jinja_env()


def _render(name: str, subject: str, **context) -> RenderedEmail:
    return RenderedEmail(
        subject=subject,
        html=_env.get_template(f"{name}.html").render(**context),
        text=_env.get_template(f"{name}.txt").render(**context),
    )


def render_job_alert_email(
    user_name: str,
    jobs: list,
    frequency: str,
    base_url: str,
    search_name: str | None = None,
) -> RenderedEmail:
    """Render a job-alert email for a list of JobSummary items."""
    count = len(jobs)
    noun = "job" if count == 1 else "jobs"
    if search_name:
        subject = f'New Jobs Matching "{search_name}" - {count} {noun} found'
    else:
        subject = f"New Jobs Matching Your Search - {count} {noun} found"
    return _render(
        "job_alert",
        subject,
        user_name=user_name or "there",
        jobs=jobs,
        frequency="daily" if frequency == "daily" else "weekly",
        search_name=search_name,
        dashboard_url=f"{base_url}/job-seeker",
    )


def render_heartbeat_email(user_name: str, base_url: str, search_name: str | None = None) -> RenderedEmail:
    if search_name:
        subject = f'Your job search "{search_name}" is still active'
    else:
        subject = "Your job search is still active"
    return _render(
        "heartbeat",
        subject,
        user_name=user_name or "there",
        search_name=search_name,
        dashboard_url=f"{base_url}/job-seeker",
    )


def render_status_changed_email(
    candidate_name: str,
    status: str,
    base_url: str,
    job_title: str | None = None,
    job_company: str | None = None,
) -> RenderedEmail:
    label = STATUS_LABELS.get(status, status.capitalize() if status else "Updated")
    subject = f"Application Update: {label}" + (f" - {job_title}" if job_title else "")
    return _render(
        "status_changed",
        subject,
        candidate_name=candidate_name or "there",
        status_label=label,
        status_color=STATUS_COLORS.get(status, "#6b7280"),
        status_message=STATUS_MESSAGES.get(status, ""),
        job_title=job_title,
        job_company=job_company,
        dashboard_url=f"{base_url}/job-seeker",
    )


def render_recruiter_contacted_email(
    candidate_name: str,
    recruiter_name: str,
    base_url: str,
    job_title: str | None = None,
    job_company: str | None = None,
    job_city: str | None = None,
) -> RenderedEmail:
    if job_title:
        subject = f"A recruiter contacted you about {job_title}"
    else:
        subject = "A recruiter wants to get in touch"
    return _render(
        "recruiter_contacted",
        subject,
        candidate_name=candidate_name or "there",
        recruiter_name=recruiter_name,
        job_title=job_title,
        job_company=job_company,
        job_city=job_city,
        dashboard_url=f"{base_url}/job-seeker",
    )


def render_candidate_applied_email(
    candidate_name: str,
    recruiter_name: str,
    applied_at: datetime,
    base_url: str,
    job_title: str | None = None,
    job_company: str | None = None,
    job_city: str | None = None,
    cover_note: str | None = None,
) -> RenderedEmail:
    subject = f"New Application: {candidate_name or 'A candidate'} applied for {job_title or 'your job posting'}"
    return _render(
        "candidate_applied",
        subject,
        candidate_name=candidate_name or "A candidate",
        recruiter_name=recruiter_name or "there",
        applied_at=applied_at,
        job_title=job_title,
        job_company=job_company,
        job_city=job_city,
        cover_note=cover_note,
        dashboard_url=f"{base_url}/recruiter",
    )


def render_application_withdrawn_email(
    candidate_name: str,
    recruiter_name: str,
    base_url: str,
    job_title: str | None = None,
    job_company: str | None = None,
) -> RenderedEmail:
    subject = f"Application Withdrawn: {candidate_name or 'A candidate'} withdrew from {job_title or 'your job posting'}"
    return _render(
        "application_withdrawn",
        subject,
        candidate_name=candidate_name or "A candidate",
        recruiter_name=recruiter_name or "there",
        job_title=job_title,
        job_company=job_company,
        dashboard_url=f"{base_url}/recruiter",
    )


def render_test_email() -> RenderedEmail:
    """Render a test email to verify transport configuration."""
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    return _render("test", f"Hireloop - Test Email ({now})", sent_at=now)
