"""Project-wide constants and mappings.

This module contains the per-tier package tables and the SEOWorks task-type
mapping tables used by the webhook pipeline and the email templates.

Two separate tables exist per tier:
    PACKAGE_LIMITS: monthly quota a dealership may consume (usage accounting).
    COMPLETION_THRESHOLDS: deliveries a single work item needs before it is
        marked COMPLETED.
"""

from dataclasses import dataclass

from seohub.models import PackageTier, UsageCategory


@dataclass(frozen=True)
class PackageLimits:
    """Per-category counts for one package tier."""

    pages: int
    blogs: int
    gbp_posts: int
    improvements: int

    def for_category(self, category: UsageCategory) -> int:
        """Return the count for a usage category."""
        return getattr(self, category.value)

    def as_dict(self) -> dict[UsageCategory, int]:
        """Return all four counts keyed by category."""
        return {category: self.for_category(category) for category in UsageCategory}


# Monthly quota per dealership
PACKAGE_LIMITS: dict[PackageTier, PackageLimits] = {
    PackageTier.SILVER: PackageLimits(pages=3, blogs=4, gbp_posts=8, improvements=8),
    PackageTier.GOLD: PackageLimits(pages=6, blogs=8, gbp_posts=16, improvements=10),
    PackageTier.PLATINUM: PackageLimits(pages=9, blogs=12, gbp_posts=20, improvements=20),
}

# Deliveries a tiered work item needs before it transitions to COMPLETED.
# Improvements never gate completion.
COMPLETION_THRESHOLDS: dict[PackageTier, PackageLimits] = {
    PackageTier.SILVER: PackageLimits(pages=1, blogs=2, gbp_posts=4, improvements=0),
    PackageTier.GOLD: PackageLimits(pages=2, blogs=4, gbp_posts=8, improvements=0),
    PackageTier.PLATINUM: PackageLimits(pages=4, blogs=8, gbp_posts=16, improvements=0),
}

# SEOWorks taskType (lowercased) → counter category
TASK_TYPE_TO_CATEGORY: dict[str, UsageCategory] = {
    "page": UsageCategory.PAGES,
    "blog": UsageCategory.BLOGS,
    "gbp_post": UsageCategory.GBP_POSTS,
    "gbp-post": UsageCategory.GBP_POSTS,
    "improvement": UsageCategory.IMPROVEMENTS,
    "maintenance": UsageCategory.IMPROVEMENTS,
    "seochange": UsageCategory.IMPROVEMENTS,
}

# SEOWorks taskType (lowercased) → human label used in emails
TASK_TYPE_DISPLAY_NAMES: dict[str, str] = {
    "page": "New Page",
    "blog": "Blog Post",
    "gbp_post": "Google Business Profile Post",
    "gbp-post": "Google Business Profile Post",
    "improvement": "Website Improvement",
    "maintenance": "Website Update",
}
DEFAULT_DISPLAY_NAME = "Content"

# Task types announced with the content template rather than the generic
# task-completion template
CONTENT_TASK_TYPES = frozenset({"page", "blog", "gbp_post", "gbp-post"})

# Task types that change existing site content instead of adding to it
UPDATE_TASK_TYPES = frozenset({"improvement", "maintenance"})

# Webhook event types
EVENT_TASK_CREATED = "task.created"
EVENT_TASK_UPDATED = "task.updated"
EVENT_TASK_COMPLETED = "task.completed"
EVENT_TASK_CANCELLED = "task.cancelled"
KNOWN_EVENT_TYPES = frozenset(
    {EVENT_TASK_CREATED, EVENT_TASK_UPDATED, EVENT_TASK_COMPLETED, EVENT_TASK_CANCELLED}
)

# Unsubscribe tokens older than this are rejected
UNSUBSCRIBE_TOKEN_MAX_AGE_HOURS = 72


def category_for_task_type(task_type: str | None) -> UsageCategory | None:
    """Map an SEOWorks taskType to its counter category (None if unrecognized)."""
    if not task_type:
        return None
    return TASK_TYPE_TO_CATEGORY.get(task_type.lower())


def display_name_for_task_type(task_type: str | None) -> str:
    """Return the email display label for an SEOWorks taskType."""
    if not task_type:
        return DEFAULT_DISPLAY_NAME
    return TASK_TYPE_DISPLAY_NAMES.get(task_type.lower(), DEFAULT_DISPLAY_NAME)


def action_verb_for_task_type(task_type: str | None) -> str:
    """Return "updated on" for site-maintenance work, "added to" otherwise."""
    if task_type and task_type.lower() in UPDATE_TASK_TYPES:
        return "updated on"
    return "added to"
