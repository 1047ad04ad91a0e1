"""Package limits and progress calculation.

Pure lookups over the per-tier tables in seohub.constants plus the
percentage arithmetic shown on dashboards and in progress emails.

Percentages round half up (2.5 → 3) and are 0 when a category's total is 0.
"""

import math
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from seohub.constants import COMPLETION_THRESHOLDS, PACKAGE_LIMITS, PackageLimits
from seohub.exceptions import DealershipNotFoundError, InvalidTierError
from seohub.models import Dealership, PackageTier, UsageCategory


@dataclass(frozen=True)
class CategoryProgress:
    """Progress for one usage category."""

    completed: int
    total: int
    percentage: int


@dataclass(frozen=True)
class PackageProgress:
    """Per-category and aggregate progress for a tier."""

    tier: PackageTier
    categories: dict[UsageCategory, CategoryProgress]
    total_completed: int
    total_tasks: int

    def as_dict(self) -> dict[str, object]:
        """Serialize with category values as keys."""
        return {
            "tier": self.tier.value,
            "categories": {
                category.value: {
                    "completed": progress.completed,
                    "total": progress.total,
                    "percentage": progress.percentage,
                }
                for category, progress in self.categories.items()
            },
            "totalTasks": {"completed": self.total_completed, "total": self.total_tasks},
        }


def normalize_tier(tier: PackageTier | str | None) -> PackageTier:
    """Coerce a tier enum member or name (case-insensitive) to PackageTier.

    Raises:
        InvalidTierError: If the value is not SILVER, GOLD or PLATINUM.
    """
    if isinstance(tier, PackageTier):
        return tier
    if isinstance(tier, str):
        try:
            return PackageTier(tier.strip().upper())
        except ValueError:
            raise InvalidTierError(tier) from None
    raise InvalidTierError(tier)


def get_limits(tier: PackageTier | str) -> PackageLimits:
    """Return the monthly limits for a package tier.

    Args:
        tier: PackageTier member or its name.

    Returns:
        PackageLimits with pages, blogs, gbp_posts and improvements quotas.

    Raises:
        InvalidTierError: If the tier is not recognized.

    Example:
        >>> get_limits("gold").pages
        6
    """
    return PACKAGE_LIMITS[normalize_tier(tier)]


def round_half_up_percentage(completed: int, total: int) -> int:
    """Return completed/total as a whole percentage, rounding .5 up."""
    if total <= 0:
        return 0
    return math.floor(completed / total * 100 + 0.5)


def compute_progress(
    tier: PackageTier | str,
    counts: dict[UsageCategory, int],
) -> PackageProgress:
    """Compute per-category and aggregate progress against a tier's limits.

    Args:
        tier: PackageTier member or its name.
        counts: Completed counts per category; missing categories count as 0.

    Returns:
        PackageProgress for the tier.

    Raises:
        InvalidTierError: If the tier is not recognized.
    """
    package_tier = normalize_tier(tier)
    limits = PACKAGE_LIMITS[package_tier]

    categories: dict[UsageCategory, CategoryProgress] = {}
    for category in UsageCategory:
        completed = counts.get(category, 0)
        total = limits.for_category(category)
        categories[category] = CategoryProgress(
            completed=completed,
            total=total,
            percentage=round_half_up_percentage(completed, total),
        )

    return PackageProgress(
        tier=package_tier,
        categories=categories,
        total_completed=sum(p.completed for p in categories.values()),
        total_tasks=sum(p.total for p in categories.values()),
    )


async def get_dealership_package_progress(
    dealership_id: str,
    session: AsyncSession,
) -> PackageProgress | None:
    """Return progress for a dealership's live counters.

    Args:
        dealership_id: Dealership primary key.
        session: Database session.

    Returns:
        PackageProgress, or None when the dealership has no active package.

    Raises:
        DealershipNotFoundError: If the dealership does not exist.
    """
    dealership = await session.get(Dealership, dealership_id)
    if dealership is None:
        raise DealershipNotFoundError(dealership_id)
    if dealership.active_package_type is None:
        return None
    return compute_progress(dealership.active_package_type, dealership.usage_counts())


def meets_completion_thresholds(
    tier: PackageTier | None,
    counts: dict[UsageCategory, int],
) -> bool:
    """Return True if a work item's completed counters close it.

    Untiered items complete on any delivery; tiered items need every
    category to reach the tier's completion threshold.
    """
    if tier is None:
        return True
    thresholds = COMPLETION_THRESHOLDS[normalize_tier(tier)]
    return all(
        counts.get(category, 0) >= thresholds.for_category(category)
        for category in UsageCategory
    )
