"""Per-user targeting rules and the default recipient resolver.

A user receives a lead when their rule matches it and they are under their
daily, weekly and monthly caps. Rules constrain geography (state, city,
postal code) and industry; every constrained dimension must match, and a
rule that constrains neither matches nothing.
"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Index,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, mapped_column

from leadpipe.bronze.storage import Base
from leadpipe.common.time import utcnow
from leadpipe.routing.protocol import NotifiedUser

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from leadpipe.leads.storage import Lead


class UserTargeting(Base):
    """Targeting rule and delivery budgets for one workspace user.

    Each of ``daily_cap``, ``weekly_cap`` and ``monthly_cap`` caps the leads
    delivered in its UTC period; zero means unlimited. A count belongs to
    the period its start column names (``count_date`` for the day, the
    Monday in ``week_start``, the first of the month in ``month_start``) and
    restarts from zero once a new period begins.
    """

    __tablename__ = "user_targeting"
    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_user_targeting_user"),
        Index("ix_user_targeting_workspace_active", "workspace_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workspace_id: Mapped[str] = mapped_column(String(36))
    user_id: Mapped[str] = mapped_column(String(36))
    industries: Mapped[list[str]] = mapped_column(JSON, default=list)
    states: Mapped[list[str]] = mapped_column(JSON, default=list)
    cities: Mapped[list[str]] = mapped_column(JSON, default=list)
    postal_codes: Mapped[list[str]] = mapped_column(JSON, default=list)
    daily_cap: Mapped[int] = mapped_column(Integer, default=0)
    daily_count: Mapped[int] = mapped_column(Integer, default=0)
    count_date: Mapped[dt.date | None] = mapped_column(Date, default=None)
    weekly_cap: Mapped[int] = mapped_column(Integer, default=0)
    weekly_count: Mapped[int] = mapped_column(Integer, default=0)
    week_start: Mapped[dt.date | None] = mapped_column(Date, default=None)
    monthly_cap: Mapped[int] = mapped_column(Integer, default=0)
    monthly_count: Mapped[int] = mapped_column(Integer, default=0)
    month_start: Mapped[dt.date | None] = mapped_column(Date, default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


@dc.dataclass(frozen=True, slots=True)
class _Budget:
    cap: str
    count: str
    start: str
    period_start: typ.Callable[[dt.date], dt.date]


_BUDGETS = (
    _Budget("daily_cap", "daily_count", "count_date", lambda day: day),
    _Budget(
        "weekly_cap",
        "weekly_count",
        "week_start",
        lambda day: day - dt.timedelta(days=day.weekday()),
    ),
    _Budget(
        "monthly_cap",
        "monthly_count",
        "month_start",
        lambda day: day.replace(day=1),
    ),
)


def _folded(values: typ.Iterable[str]) -> set[str]:
    return {value.strip().casefold() for value in values if value and value.strip()}


def _contains(candidates: set[str], value: str | None) -> bool:
    return value is not None and value.strip().casefold() in candidates


def matches_targeting(targeting: UserTargeting, lead: Lead) -> bool:
    """Return True when ``lead`` satisfies every dimension ``targeting`` sets."""
    states = _folded(targeting.states or [])
    cities = _folded(targeting.cities or [])
    postal_codes = _folded(targeting.postal_codes or [])
    industries = _folded(targeting.industries or [])

    has_geo = bool(states or cities or postal_codes)
    has_industry = bool(industries)
    if not has_geo and not has_industry:
        return False

    if has_geo and not (
        _contains(states, lead.state)
        or _contains(cities, lead.city)
        or _contains(postal_codes, lead.postal_code)
    ):
        return False
    return not has_industry or _contains(industries, lead.company_industry)


def _current_count(targeting: UserTargeting, budget: _Budget, today: dt.date) -> int:
    if getattr(targeting, budget.start) != budget.period_start(today):
        return 0
    return getattr(targeting, budget.count) or 0


def at_cap(targeting: UserTargeting, today: dt.date) -> bool:
    """Return True when any of the user's budgets is spent for ``today``."""
    for budget in _BUDGETS:
        cap = getattr(targeting, budget.cap) or 0
        if cap > 0 and _current_count(targeting, budget, today) >= cap:
            return True
    return False


def charge_delivery(targeting: UserTargeting, today: dt.date) -> None:
    """Count one delivered lead against every budget, rolling stale periods."""
    for budget in _BUDGETS:
        count = _current_count(targeting, budget, today)
        setattr(targeting, budget.start, budget.period_start(today))
        setattr(targeting, budget.count, count + 1)


class TargetingRecipientResolver:
    """Resolve recipients from active ``user_targeting`` rows.

    Resolution only reads; :meth:`charge` spends the budgets once the
    notification has been handed off, so a failed dispatch costs nothing.
    Caps are checked at resolution time, so leads routed concurrently can
    overshoot a cap by the number in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Store the session factory and the clock used for budget periods."""
        self._session_factory = session_factory
        self._clock = clock

    def _today(self) -> dt.date:
        return self._clock().astimezone(dt.UTC).date()

    async def resolve(self, lead: Lead) -> list[NotifiedUser]:
        """Return users whose rules match ``lead`` and who have budget left."""
        today = self._today()
        async with self._session_factory() as session:
            stream = await session.scalars(
                select(UserTargeting)
                .where(
                    UserTargeting.workspace_id == lead.workspace_id,
                    UserTargeting.is_active.is_(True),
                )
                .order_by(UserTargeting.id)
            )
            return [
                NotifiedUser(
                    user_id=targeting.user_id, workspace_id=targeting.workspace_id
                )
                for targeting in stream.all()
                if not at_cap(targeting, today) and matches_targeting(targeting, lead)
            ]

    async def charge(self, recipients: typ.Sequence[NotifiedUser]) -> None:
        """Count one delivered lead against each recipient's budgets."""
        if not recipients:
            return
        today = self._today()
        async with self._session_factory() as session, session.begin():
            for workspace_id, user_ids in _by_workspace(recipients).items():
                stream = await session.scalars(
                    select(UserTargeting).where(
                        UserTargeting.workspace_id == workspace_id,
                        UserTargeting.user_id.in_(user_ids),
                    )
                )
                for targeting in stream.all():
                    charge_delivery(targeting, today)


def _by_workspace(recipients: typ.Iterable[NotifiedUser]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for recipient in recipients:
        grouped.setdefault(recipient.workspace_id, []).append(recipient.user_id)
    return grouped
