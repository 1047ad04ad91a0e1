"""Dealership package usage accounting with monthly billing periods.

Tracks how much of its monthly package a dealership has consumed. Usage is
recorded after a webhook's primary transaction commits, one category at a
time.

Architecture Pattern:
    - Rollover first: every increment begins by making sure the billing
      window is current, archiving and resetting counters when it elapsed
    - Conditional UPDATE: the quota check and the increment are a single
      statement (counter = counter + 1 WHERE counter < limit), so two
      concurrent webhooks can never push a counter past its limit
    - Guarded reset: the rollover UPDATE matches on the old period end, so
      only one concurrent caller resets and archives a given period

Callers own the transaction:
    async with session_factory() as session, session.begin():
        await increment_usage(dealership_id, UsageCategory.PAGES, session)
"""

import calendar
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.exceptions import DealershipNotFoundError, NoActivePackageError, QuotaExceededError
from seohub.models import Dealership, MonthlyUsage, UsageCategory, as_utc, utcnow
from seohub.services.package_limits import get_limits
from seohub.utils.logging import get_logger

log = get_logger(__name__)


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """Return the first and last instant of now's calendar month in UTC.

    Args:
        now: Reference instant (naive values are treated as UTC).

    Returns:
        (start, end) where end is the last microsecond of the month.
    """
    now = as_utc(now).astimezone(timezone.utc)
    last_day = calendar.monthrange(now.year, now.month)[1]
    start = datetime(now.year, now.month, 1, tzinfo=timezone.utc)
    end = datetime(now.year, now.month, last_day, 23, 59, 59, 999999, tzinfo=timezone.utc)
    return start, end


async def ensure_billing_period_current(
    dealership_id: str,
    session: AsyncSession,
    now: datetime | None = None,
) -> Dealership:
    """Roll a dealership's usage window forward if it has elapsed.

    When now is past current_billing_period_end, the previous period's tier
    and counters are archived to monthly_usage (keyed by the previous period
    start's month and year), the four counters reset to zero, and the period
    becomes the current calendar month.

    Dealerships without an active package or without period bounds are
    returned unchanged.

    Args:
        dealership_id: Dealership primary key.
        session: Database session (caller controls the transaction).
        now: Reference instant, defaults to the current UTC time.

    Returns:
        The dealership with current counters and period.

    Raises:
        DealershipNotFoundError: If the dealership does not exist.
    """
    now = as_utc(now) if now is not None else utcnow()

    dealership = await session.get(Dealership, dealership_id, populate_existing=True)
    if dealership is None:
        raise DealershipNotFoundError(dealership_id)

    if (
        dealership.active_package_type is None
        or dealership.current_billing_period_start is None
        or dealership.current_billing_period_end is None
    ):
        return dealership

    if now <= as_utc(dealership.current_billing_period_end):
        return dealership

    previous_start = as_utc(dealership.current_billing_period_start)
    previous_tier = dealership.active_package_type
    previous_counts = dealership.usage_counts()
    new_start, new_end = month_bounds(now)

    stmt = (
        update(Dealership)
        .where(
            Dealership.id == dealership_id,
            Dealership.current_billing_period_end == dealership.current_billing_period_end,
        )
        .values(
            pages_used_this_period=0,
            blogs_used_this_period=0,
            gbp_posts_used_this_period=0,
            improvements_used_this_period=0,
            current_billing_period_start=new_start,
            current_billing_period_end=new_end,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)

    if result.rowcount == 1:
        session.add(
            MonthlyUsage(
                dealership_id=dealership_id,
                month=previous_start.month,
                year=previous_start.year,
                package_type=previous_tier,
                pages_used=previous_counts[UsageCategory.PAGES],
                blogs_used=previous_counts[UsageCategory.BLOGS],
                gbp_posts_used=previous_counts[UsageCategory.GBP_POSTS],
                improvements_used=previous_counts[UsageCategory.IMPROVEMENTS],
            )
        )
        await session.flush()
        log.info(
            "billing_period_rolled_over",
            dealership_id=dealership_id,
            archived_month=previous_start.month,
            archived_year=previous_start.year,
            tier=previous_tier.value,
            new_period_start=new_start.isoformat(),
        )
    else:
        log.info("billing_period_rollover_skipped_concurrent", dealership_id=dealership_id)

    await session.refresh(dealership)
    return dealership


async def increment_usage(
    dealership_id: str,
    category: UsageCategory,
    session: AsyncSession,
    now: datetime | None = None,
) -> Dealership:
    """Consume one unit of a dealership's monthly quota.

    Args:
        dealership_id: Dealership primary key.
        category: Usage category to increment.
        session: Database session (caller controls the transaction).
        now: Reference instant for the rollover check.

    Returns:
        The dealership with the incremented counter.

    Raises:
        DealershipNotFoundError: If the dealership does not exist.
        NoActivePackageError: If the dealership has no active package.
        QuotaExceededError: If the counter is already at the tier limit
            (the counter is left unchanged).
    """
    dealership = await ensure_billing_period_current(dealership_id, session, now=now)

    if dealership.active_package_type is None:
        raise NoActivePackageError(dealership_id)

    limit = get_limits(dealership.active_package_type).for_category(category)
    column = getattr(Dealership, category.usage_column)

    stmt = (
        update(Dealership)
        .where(Dealership.id == dealership_id, column < limit)
        .values({category.usage_column: column + 1})
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)

    if result.rowcount == 0:
        log.warning(
            "usage_quota_exceeded",
            dealership_id=dealership_id,
            category=category.value,
            limit=limit,
        )
        raise QuotaExceededError(dealership_id, category.value, limit)

    await session.refresh(dealership)
    log.info(
        "usage_incremented",
        dealership_id=dealership_id,
        category=category.value,
        used=dealership.usage_for(category),
        limit=limit,
    )
    return dealership
