"""Notification dispatch for webhook-driven request changes.

Renders the right template, checks the user's email preferences and hands
the email to the injected EmailQueue. Nothing here sends email directly.

An email is queued only if all of the following hold:
    - the user has an email address
    - the user has a preferences row
    - preferences.email_notifications is on
    - the per-category flag (task_completed, status_changed, ...) is on
"""

from seohub.config import get_app_url, get_unsubscribe_secret
from seohub.emails.queue import EmailMessage, EmailQueue
from seohub.emails.templates import (
    RenderedEmail,
    TaskDetails,
    render_completion_email,
    render_status_changed,
)
from seohub.models import EmailCategory, Request, RequestStatus, User
from seohub.utils.logging import get_logger
from seohub.utils.unsubscribe import build_unsubscribe_url

log = get_logger(__name__)


def user_accepts(user: User, category: EmailCategory) -> bool:
    """Return True if user should receive an email of this category."""
    if not user.email:
        return False
    if user.preferences is None:
        return False
    return user.preferences.allows(category)


class NotificationDispatcher:
    """Queue preference-checked notification emails.

    Usage:
        dispatcher = NotificationDispatcher(app.state.email_queue)
        await dispatcher.notify_task_completed(request, TaskDetails(...))
    """

    def __init__(
        self,
        email_queue: EmailQueue,
        app_url: str | None = None,
        unsubscribe_secret: str | None = None,
    ):
        self.email_queue = email_queue
        self.app_url = app_url or get_app_url()
        self.unsubscribe_secret = unsubscribe_secret or get_unsubscribe_secret()

    def _unsubscribe_url(self, user: User, category: EmailCategory) -> str | None:
        return build_unsubscribe_url(self.app_url, user.id, category, self.unsubscribe_secret)

    def _suppressed(self, user: User, category: EmailCategory) -> bool:
        if user_accepts(user, category):
            return False
        log.info(
            "email_skipped_by_preferences",
            user_id=user.id,
            category=category.value,
            has_preferences=user.preferences is not None,
        )
        return True

    async def _queue(self, user: User, category: EmailCategory, email: RenderedEmail) -> bool:
        await self.email_queue.add(EmailMessage(to=user.email, subject=email.subject, html=email.html))
        log.info("email_notification_queued", user_id=user.id, category=category.value, subject=email.subject)
        return True

    async def notify_task_completed(self, request: Request, task: TaskDetails) -> bool:
        """Queue the completion email for a delivered task.

        Content deliveries (page, blog, GBP post) get the content announcement;
        other task types get the generic task-completion email.

        Args:
            request: Request the task was recorded on (user relationship loaded).
            task: Delivered task title, type and URL.

        Returns:
            True if an email was queued, False if preferences suppressed it.
        """
        user = request.user
        if self._suppressed(user, EmailCategory.TASK_COMPLETED):
            return False

        email = render_completion_email(
            request,
            user,
            task,
            unsubscribe_url=self._unsubscribe_url(user, EmailCategory.TASK_COMPLETED),
        )
        return await self._queue(user, EmailCategory.TASK_COMPLETED, email)

    async def notify_status_changed(
        self,
        request: Request,
        old_status: RequestStatus,
        new_status: RequestStatus,
    ) -> bool:
        """Queue the status-change email.

        Args:
            request: Request after the transition (user relationship loaded).
            old_status: Status before the transition.
            new_status: Status after the transition.

        Returns:
            True if an email was queued, False if preferences suppressed it.
        """
        user = request.user
        if self._suppressed(user, EmailCategory.STATUS_CHANGED):
            return False

        email = render_status_changed(
            request,
            user,
            old_status,
            new_status,
            unsubscribe_url=self._unsubscribe_url(user, EmailCategory.STATUS_CHANGED),
        )
        return await self._queue(user, EmailCategory.STATUS_CHANGED, email)
