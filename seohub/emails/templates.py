"""Notification email rendering.

HTML bodies are rendered from Jinja2 templates in seohub/emails/html with
autoescaping on, so titles, names and URLs supplied by users or by SEOWorks
are HTML-escaped in bodies. Subjects are plain text and carry titles verbatim.

Template choice for a completed task:
    page, blog, gbp_post → content_added.html ("New Content added to Your Website!")
    anything else        → task_completed.html ("Work updated on Your Website", ...)
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from jinja2 import Environment, PackageLoader, select_autoescape

from seohub.config import get_app_url
from seohub.constants import (
    CONTENT_TASK_TYPES,
    action_verb_for_task_type,
    display_name_for_task_type,
)
from seohub.models import Request, RequestStatus, UsageCategory, User

_env = Environment(
    loader=PackageLoader("seohub", "emails/html"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

CONTENT_ICONS = {
    "page": "📄",
    "blog": "📝",
    "gbp_post": "🏢",
    "gbp-post": "🏢",
}
DEFAULT_ICON = "✨"

STATUS_MESSAGES = {
    RequestStatus.IN_PROGRESS: "Your request is now being worked on by our team.",
    RequestStatus.COMPLETED: "Great news! Your request has been completed.",
    RequestStatus.CANCELLED: "Your request has been cancelled.",
}
DEFAULT_STATUS_MESSAGE = "The status of your request has changed."

CONTENT_PROGRESS_LABELS = {
    UsageCategory.PAGES: "Pages Added",
    UsageCategory.BLOGS: "Blog Posts Published",
    UsageCategory.GBP_POSTS: "Google Business Posts",
    UsageCategory.IMPROVEMENTS: "Site Improvements",
}
TASK_PROGRESS_LABELS = {
    UsageCategory.PAGES: "Pages Completed",
    UsageCategory.BLOGS: "Blogs Completed",
    UsageCategory.GBP_POSTS: "GBP Posts Completed",
    UsageCategory.IMPROVEMENTS: "Improvements Completed",
}

UNSUBSCRIBE_CATEGORY_LABELS = {
    "requestCreated": "request created",
    "statusChanged": "status update",
    "taskCompleted": "task completed",
    "weeklySummary": "weekly summary",
    "all": "notification",
}


@dataclass(frozen=True)
class TaskDetails:
    """The delivered task an email announces."""

    title: str
    type: str
    url: str | None = None


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and HTML body ready for the email queue."""

    subject: str
    html: str


def _user_name(user: User) -> str:
    return (user.name or "").strip() or "there"


def _progress(request: Request, labels: dict[UsageCategory, str]) -> list[tuple[str, int]]:
    # Only categories with at least one delivery are listed
    return [
        (labels[category], request.completed_count(category))
        for category in UsageCategory
        if request.completed_count(category) > 0
    ]


def _common_context(user: User, unsubscribe_url: str | None) -> dict[str, object]:
    return {
        "user_name": _user_name(user),
        "unsubscribe_url": unsubscribe_url,
        "app_url": get_app_url(),
        "year": datetime.now(timezone.utc).year,
    }


def render_content_added(
    request: Request,
    user: User,
    task: TaskDetails,
    unsubscribe_url: str | None = None,
) -> RenderedEmail:
    """Render the announcement for a new page, blog post or GBP post."""
    display_name = display_name_for_task_type(task.type)
    html = _env.get_template("content_added.html").render(
        **_common_context(user, unsubscribe_url),
        action_verb=action_verb_for_task_type(task.type),
        display_name=display_name,
        icon=CONTENT_ICONS.get(task.type.lower(), DEFAULT_ICON),
        task_title=task.title,
        task_url=task.url,
        progress=_progress(request, CONTENT_PROGRESS_LABELS) if request.package_type else [],
    )
    return RenderedEmail(subject=f'✨ {display_name} Added: "{task.title}"', html=html)


def render_task_completed(
    request: Request,
    user: User,
    task: TaskDetails,
    unsubscribe_url: str | None = None,
) -> RenderedEmail:
    """Render the generic task-completion email (improvements, maintenance, ...)."""
    html = _env.get_template("task_completed.html").render(
        **_common_context(user, unsubscribe_url),
        action_verb=action_verb_for_task_type(task.type),
        display_name=display_name_for_task_type(task.type),
        request_title=request.title,
        request_status=request.status.value,
        package_type=request.package_type.value if request.package_type else None,
        task_title=task.title,
        task_url=task.url,
        progress=_progress(request, TASK_PROGRESS_LABELS),
    )
    return RenderedEmail(subject=f"Task Completed: {task.title}", html=html)


def render_completion_email(
    request: Request,
    user: User,
    task: TaskDetails,
    unsubscribe_url: str | None = None,
) -> RenderedEmail:
    """Pick the content or task-completion template for a delivered task."""
    if task.type.lower() in CONTENT_TASK_TYPES:
        return render_content_added(request, user, task, unsubscribe_url)
    return render_task_completed(request, user, task, unsubscribe_url)


def render_status_changed(
    request: Request,
    user: User,
    old_status: RequestStatus,
    new_status: RequestStatus,
    unsubscribe_url: str | None = None,
) -> RenderedEmail:
    """Render the status-change email.

    Completed requests list their completed tasks in the body.
    """
    html = _env.get_template("status_changed.html").render(
        **_common_context(user, unsubscribe_url),
        status_message=STATUS_MESSAGES.get(new_status, DEFAULT_STATUS_MESSAGE),
        request_title=request.title,
        old_status=old_status.value,
        new_status=new_status.value,
        completed_tasks=request.completed_tasks or [],
    )
    verb = "Completed" if new_status == RequestStatus.COMPLETED else "Updated"
    return RenderedEmail(subject=f"Request {verb}: {request.title}", html=html)


def render_unsubscribed_page(category: str) -> str:
    """Render the browser page shown after a successful unsubscribe."""
    return _env.get_template("unsubscribed.html").render(
        category_label=UNSUBSCRIBE_CATEGORY_LABELS.get(category, "notification"),
        app_url=get_app_url(),
        unsubscribe_url=None,
        year=datetime.now(timezone.utc).year,
    )
