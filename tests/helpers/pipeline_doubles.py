"""Routing and store doubles shared by pipeline tests."""

from __future__ import annotations

import asyncio
import typing as typ

from leadpipe.routing import NotifiedUser

if typ.TYPE_CHECKING:
    from leadpipe.leads import Lead


class StaticRecipientResolver:
    """Route every lead to a fixed list of user ids."""

    def __init__(self, user_ids: typ.Sequence[str]) -> None:
        self.user_ids = list(user_ids)
        self.calls: list[str] = []

    async def resolve(self, lead: Lead) -> list[NotifiedUser]:
        """Return the configured users for ``lead``'s workspace."""
        self.calls.append(lead.id)
        return [
            NotifiedUser(user_id=user_id, workspace_id=lead.workspace_id)
            for user_id in self.user_ids
        ]


class BudgetedResolver(StaticRecipientResolver):
    """Static resolver that records the recipients it is charged for."""

    def __init__(self, user_ids: typ.Sequence[str]) -> None:
        super().__init__(user_ids)
        self.charged: list[list[str]] = []

    async def charge(self, recipients: typ.Sequence[NotifiedUser]) -> None:
        """Record the charged user ids."""
        self.charged.append([user.user_id for user in recipients])


class RecordingDispatcher:
    """Collect dispatched notifications for assertions."""

    def __init__(self) -> None:
        self.dispatched: list[tuple[str, list[str]]] = []

    async def dispatch(
        self, lead: Lead, recipients: typ.Sequence[NotifiedUser]
    ) -> None:
        """Record the lead id and recipient ids."""
        self.dispatched.append((lead.id, [user.user_id for user in recipients]))


class FailingDispatcher:
    """Dispatcher whose every call raises ``exc``."""

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def dispatch(
        self, lead: Lead, recipients: typ.Sequence[NotifiedUser]
    ) -> None:
        """Raise the configured exception."""
        del lead, recipients
        raise self.exc


class SlowResolver:
    """Resolver that never answers within a short timeout."""

    async def resolve(self, lead: Lead) -> list[NotifiedUser]:
        """Sleep past any reasonable routing timeout."""
        await asyncio.sleep(10)
        return [NotifiedUser(user_id="late", workspace_id=lead.workspace_id)]


class HangingCall:
    """Awaitable factory standing in for a store call that never returns."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, *args: object, **kwargs: object) -> typ.NoReturn:
        """Block until cancelled by the caller's timeout."""
        del args, kwargs
        self.calls += 1
        await asyncio.Event().wait()
        raise AssertionError
