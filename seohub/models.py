"""SQLAlchemy 2.0 ORM models.

This module contains all SQLAlchemy models for the SEO Hub back end.
All models use the Mapped[type] annotation pattern required by SQLAlchemy 2.0.

Tenancy:
    Agency → Dealership → User. Monthly package usage is tracked on the
    Dealership; work items ("requests") belong to a User and, through the
    user or directly, to a Dealership.

Identifiers:
    Primary keys are text UUIDs. SEOWorks echoes our request ids back as
    externalId and sends its own task ids, so lookups compare arbitrary
    strings against these columns.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def new_id() -> str:
    """Generate a text UUID primary key."""
    return str(uuid.uuid4())


class PackageTier(enum.Enum):
    """Monthly SEO package tiers sold to dealerships."""

    SILVER = "SILVER"
    GOLD = "GOLD"
    PLATINUM = "PLATINUM"


class RequestStatus(enum.Enum):
    """Lifecycle of a work item.

    Flow:
        PENDING → IN_PROGRESS → COMPLETED
        PENDING/IN_PROGRESS → CANCELLED

    Terminal States:
        COMPLETED, CANCELLED
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Statuses a webhook may link an unassigned work item from
OPEN_STATUSES = [RequestStatus.PENDING, RequestStatus.IN_PROGRESS]


class RequestPriority(enum.Enum):
    """Work item priority."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class UserRole(enum.Enum):
    """User roles across the agency → dealership hierarchy."""

    USER = "USER"
    ADMIN = "ADMIN"
    AGENCY_ADMIN = "AGENCY_ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class UsageCategory(enum.Enum):
    """The four quota-tracked task categories.

    Values double as the column prefix on Dealership
    (e.g. "gbp_posts" → gbp_posts_used_this_period) and Request
    (e.g. "gbp_posts" → gbp_posts_completed).
    """

    PAGES = "pages"
    BLOGS = "blogs"
    GBP_POSTS = "gbp_posts"
    IMPROVEMENTS = "improvements"

    @property
    def usage_column(self) -> str:
        """Dealership counter attribute name for this category."""
        return f"{self.value}_used_this_period"

    @property
    def completed_column(self) -> str:
        """Request counter attribute name for this category."""
        return f"{self.value}_completed"


class EmailCategory(enum.Enum):
    """Notification categories users can opt out of.

    Values are the identifiers embedded in unsubscribe tokens.
    """

    REQUEST_CREATED = "requestCreated"
    STATUS_CHANGED = "statusChanged"
    TASK_COMPLETED = "taskCompleted"
    WEEKLY_SUMMARY = "weeklySummary"
    ALL = "all"


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    # values_callable stores enum.value rather than enum.name
    return Enum(
        enum_cls,
        native_enum=True,
        name=name,
        values_callable=lambda x: [e.value for e in x],
    )


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Agency(Base):
    """Agency that resells SEO packages to dealerships."""

    __tablename__ = "agencies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return f"<Agency(id={self.id!r}, name={self.name!r})>"


class Dealership(Base):
    """Dealership tenant with monthly package usage tracking.

    Attributes:
        id: Text UUID primary key.
        name: Display name.
        agency_id: Owning agency (nullable for direct customers).
        active_package_type: Current tier, or None when no package is active.
        current_billing_period_start: Start of the usage window (UTC).
        current_billing_period_end: End of the usage window (UTC, inclusive).
        pages_used_this_period: Pages delivered in the current window.
        blogs_used_this_period: Blogs delivered in the current window.
        gbp_posts_used_this_period: GBP posts delivered in the current window.
        improvements_used_this_period: Improvements delivered in the current window.

    Invariants:
        Counters are non-negative and never exceed the tier limit while the
        window is current. They reset to zero only at billing-period rollover.

    Constraints:
        - All *_used_this_period >= 0
    """

    __tablename__ = "dealerships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    agency_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    active_package_type: Mapped[PackageTier | None] = mapped_column(
        _enum_column(PackageTier, "packagetier"),
        nullable=True,
    )
    current_billing_period_start: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    current_billing_period_end: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    pages_used_this_period: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    blogs_used_this_period: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    gbp_posts_used_this_period: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    improvements_used_this_period: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    __table_args__ = (
        CheckConstraint("pages_used_this_period >= 0", name="ck_dealership_pages_used"),
        CheckConstraint("blogs_used_this_period >= 0", name="ck_dealership_blogs_used"),
        CheckConstraint("gbp_posts_used_this_period >= 0", name="ck_dealership_gbp_posts_used"),
        CheckConstraint(
            "improvements_used_this_period >= 0", name="ck_dealership_improvements_used"
        ),
    )

    def usage_for(self, category: UsageCategory) -> int:
        """Return the live counter for a usage category."""
        return getattr(self, category.usage_column)

    def usage_counts(self) -> dict[UsageCategory, int]:
        """Return all four live counters keyed by category."""
        return {category: self.usage_for(category) for category in UsageCategory}

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        tier = self.active_package_type.value if self.active_package_type else None
        return f"<Dealership(id={self.id!r}, name={self.name!r}, tier={tier})>"


class User(Base):
    """Dashboard user belonging to at most one agency and one dealership.

    SEOWorks identifies users through the webhook's clientId (our user id)
    or clientEmail.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole, "userrole"),
        nullable=False,
        default=UserRole.USER,
    )
    agency_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    dealership_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("dealerships.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    preferences: Mapped["UserPreferences | None"] = relationship(
        "UserPreferences",
        back_populates="user",
        uselist=False,
        lazy="selectin",
    )
    dealership: Mapped["Dealership | None"] = relationship("Dealership")

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return f"<User(id={self.id!r}, role={self.role.value})>"


class UserPreferences(Base):
    """Per-user email notification preferences.

    email_notifications is the master switch; the remaining flags gate
    individual notification categories.
    """

    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    request_created: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status_changed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    task_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    weekly_summary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    user: Mapped["User"] = relationship("User", back_populates="preferences")

    # EmailCategory → attribute name
    CATEGORY_FLAGS = {
        EmailCategory.REQUEST_CREATED: "request_created",
        EmailCategory.STATUS_CHANGED: "status_changed",
        EmailCategory.TASK_COMPLETED: "task_completed",
        EmailCategory.WEEKLY_SUMMARY: "weekly_summary",
        EmailCategory.ALL: "email_notifications",
    }

    def allows(self, category: EmailCategory) -> bool:
        """Return True if this user accepts emails of the given category."""
        if not self.email_notifications:
            return False
        return bool(getattr(self, self.CATEGORY_FLAGS[category]))


class Request(Base):
    """SEO work item requested for a dealership.

    Work items are created by the dashboard (out of scope here) or
    synthesized by the SEOWorks webhook when a completed task matches no
    existing item. The webhook links items to SEOWorks tasks through
    seoworks_task_id and records deliveries in completed_tasks.

    Attributes:
        id: Text UUID primary key.
        user_id: Requesting user.
        dealership_id: Dealership the work is for (falls back to the user's).
        title: Short title.
        description: Free text.
        type: Task category (page, blog, gbp_post, improvement, maintenance, ...).
        priority: LOW / MEDIUM / HIGH.
        status: PENDING / IN_PROGRESS / COMPLETED / CANCELLED.
        package_type: Tier whose completion thresholds close this item (nullable).
        seoworks_task_id: Linked SEOWorks task id (unique, nullable).
        pages_completed / blogs_completed / gbp_posts_completed /
            improvements_completed: Deliveries recorded against this item.
        completed_tasks: Ordered list of {title, type, url?, completedAt}.
        completed_at: Set when the item transitions to COMPLETED.
    """

    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    dealership_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("dealerships.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    agency_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("agencies.id", ondelete="SET NULL"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[RequestPriority] = mapped_column(
        _enum_column(RequestPriority, "requestpriority"),
        nullable=False,
        default=RequestPriority.MEDIUM,
    )
    status: Mapped[RequestStatus] = mapped_column(
        _enum_column(RequestStatus, "requeststatus"),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )
    package_type: Mapped[PackageTier | None] = mapped_column(
        _enum_column(PackageTier, "packagetier"),
        nullable=True,
    )
    seoworks_task_id: Mapped[str | None] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        index=True,
    )
    pages_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    blogs_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    gbp_posts_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    improvements_completed: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    completed_tasks: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
    )

    user: Mapped["User"] = relationship("User", lazy="selectin")

    __table_args__ = (
        # Strategy 3 lookup: a user's open, unlinked items of a given type
        Index("ix_requests_user_id_status", "user_id", "status"),
    )

    def completed_count(self, category: UsageCategory) -> int:
        """Return this item's completed counter for a category."""
        return getattr(self, category.completed_column)

    def completed_counts(self) -> dict[UsageCategory, int]:
        """Return all four completed counters keyed by category."""
        return {category: self.completed_count(category) for category in UsageCategory}

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<Request(id={self.id!r}, type={self.type!r}, status={self.status.value}, "
            f"seoworks_task_id={self.seoworks_task_id!r})>"
        )


class MonthlyUsage(Base):
    """Immutable snapshot of a dealership's counters for one billing month.

    Written once per rollover; (dealership_id, month, year) is unique so a
    concurrent second rollover for the same month fails instead of
    duplicating the archive.
    """

    __tablename__ = "monthly_usage"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    dealership_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("dealerships.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    package_type: Mapped[PackageTier] = mapped_column(
        _enum_column(PackageTier, "packagetier"),
        nullable=False,
    )
    pages_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    blogs_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gbp_posts_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    improvements_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("dealership_id", "month", "year", name="uq_monthly_usage_period"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_monthly_usage_month"),
    )

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<MonthlyUsage(dealership_id={self.dealership_id!r}, "
            f"period={self.year}-{self.month:02d}, tier={self.package_type.value})>"
        )


class OrphanedTask(Base):
    """SEOWorks event that could not be matched to a work item.

    Stored for later reconciliation once the client's user account exists.

    Attributes:
        external_id: SEOWorks task id from the payload.
        client_id / client_email: Client identifiers from the payload.
        event_type: Webhook event type (task.completed, ...).
        task_type: SEOWorks task category.
        status: SEOWorks task status string.
        completion_date: Completion timestamp from the payload, if any.
        deliverables: Raw deliverables value from the payload.
        payload: Full webhook payload (for audit).
        processed: True once reconciled.
        linked_request_id: Work item created during reconciliation.
        notes: Free-text processing notes.
    """

    __tablename__ = "orphaned_tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    external_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    client_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    client_email: Mapped[str | None] = mapped_column(String(320), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    task_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    completion_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    deliverables: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    linked_request_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
    )

    def __repr__(self) -> str:
        """Return string representation for debugging."""
        return (
            f"<OrphanedTask(external_id={self.external_id!r}, "
            f"event_type={self.event_type!r}, processed={self.processed})>"
        )
