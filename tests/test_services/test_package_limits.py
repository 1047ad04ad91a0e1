"""Tests for package limits and progress calculation.

Tests cover:
    - get_limits / normalize_tier: tier tables and case-insensitive names
    - round_half_up_percentage: .5 rounds up, zero totals
    - compute_progress: per-category and aggregate totals
    - get_dealership_package_progress: live counters from the database
    - meets_completion_thresholds: tiered and untiered work items
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.exceptions import DealershipNotFoundError, InvalidTierError
from seohub.models import PackageTier, UsageCategory
from seohub.services.package_limits import (
    compute_progress,
    get_dealership_package_progress,
    get_limits,
    meets_completion_thresholds,
    normalize_tier,
    round_half_up_percentage,
)
from tests.support.factories import create_dealership


class TestGetLimits:
    """Test the monthly quota table lookups."""

    @pytest.mark.parametrize(
        "tier,expected",
        [
            (PackageTier.SILVER, (3, 4, 8, 8)),
            (PackageTier.GOLD, (6, 8, 16, 10)),
            (PackageTier.PLATINUM, (9, 12, 20, 20)),
        ],
    )
    def test_limits_per_tier(self, tier, expected):
        limits = get_limits(tier)

        assert (limits.pages, limits.blogs, limits.gbp_posts, limits.improvements) == expected

    def test_tier_names_are_case_insensitive(self):
        assert get_limits("gold") == get_limits(PackageTier.GOLD)
        assert normalize_tier(" Platinum ") == PackageTier.PLATINUM

    @pytest.mark.parametrize("tier", ["BRONZE", "", None, 3])
    def test_invalid_tier_raises(self, tier):
        with pytest.raises(InvalidTierError):
            get_limits(tier)

    def test_invalid_tier_error_is_value_error(self):
        with pytest.raises(ValueError, match="Invalid package tier"):
            normalize_tier("DIAMOND")

    def test_for_category_matches_attributes(self):
        limits = get_limits(PackageTier.SILVER)

        assert limits.for_category(UsageCategory.GBP_POSTS) == 8
        assert limits.as_dict()[UsageCategory.BLOGS] == 4


class TestRoundHalfUpPercentage:
    """Test percentage rounding."""

    @pytest.mark.parametrize(
        "completed,total,expected",
        [
            (1, 8, 13),  # 12.5 rounds up
            (1, 3, 33),
            (2, 3, 67),
            (3, 6, 50),
            (6, 6, 100),
            (0, 9, 0),
            (5, 0, 0),
            (0, 0, 0),
        ],
    )
    def test_rounding(self, completed, total, expected):
        assert round_half_up_percentage(completed, total) == expected


class TestComputeProgress:
    """Test per-category and aggregate progress."""

    def test_gold_progress(self):
        progress = compute_progress(
            PackageTier.GOLD,
            {UsageCategory.PAGES: 3, UsageCategory.BLOGS: 1},
        )

        pages = progress.categories[UsageCategory.PAGES]
        assert (pages.completed, pages.total, pages.percentage) == (3, 6, 50)
        assert progress.categories[UsageCategory.BLOGS].percentage == 13
        assert progress.categories[UsageCategory.GBP_POSTS].completed == 0
        assert progress.total_completed == 4
        assert progress.total_tasks == 6 + 8 + 16 + 10

    def test_as_dict_uses_category_values(self):
        progress = compute_progress("silver", {UsageCategory.GBP_POSTS: 2})

        data = progress.as_dict()

        assert data["tier"] == "SILVER"
        assert data["categories"]["gbp_posts"] == {"completed": 2, "total": 8, "percentage": 25}
        assert data["totalTasks"] == {"completed": 2, "total": 23}


class TestGetDealershipPackageProgress:
    """Test progress for a stored dealership."""

    async def test_reads_live_counters(self, async_test_session: AsyncSession):
        dealership = create_dealership(tier=PackageTier.PLATINUM, pages=9, blogs=6)
        async_test_session.add(dealership)
        await async_test_session.commit()

        progress = await get_dealership_package_progress(dealership.id, async_test_session)

        assert progress is not None
        assert progress.categories[UsageCategory.PAGES].percentage == 100
        assert progress.categories[UsageCategory.BLOGS].percentage == 50

    async def test_no_active_package_returns_none(self, async_test_session: AsyncSession):
        dealership = create_dealership(tier=None)
        async_test_session.add(dealership)
        await async_test_session.commit()

        assert await get_dealership_package_progress(dealership.id, async_test_session) is None

    async def test_unknown_dealership_raises(self, async_test_session: AsyncSession):
        with pytest.raises(DealershipNotFoundError):
            await get_dealership_package_progress("missing", async_test_session)


class TestMeetsCompletionThresholds:
    """Test when a work item's counters close it."""

    def test_untiered_item_completes_immediately(self):
        assert meets_completion_thresholds(None, {}) is True

    def test_silver_needs_every_category(self):
        counts = {
            UsageCategory.PAGES: 1,
            UsageCategory.BLOGS: 2,
            UsageCategory.GBP_POSTS: 3,
        }
        assert meets_completion_thresholds(PackageTier.SILVER, counts) is False

        counts[UsageCategory.GBP_POSTS] = 4
        assert meets_completion_thresholds(PackageTier.SILVER, counts) is True

    def test_improvements_never_gate_completion(self):
        counts = {
            UsageCategory.PAGES: 2,
            UsageCategory.BLOGS: 4,
            UsageCategory.GBP_POSTS: 8,
            UsageCategory.IMPROVEMENTS: 0,
        }
        assert meets_completion_thresholds(PackageTier.GOLD, counts) is True
