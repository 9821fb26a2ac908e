"""
Base class for view bindings.

A binding pairs a view's data needs with the content store and the
subscription manager: it holds the last fetched snapshot, re-fetches it
wholesale on refresh() or on any change notification, and runs mutation
actions that write through the store and then refresh.
"""
from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, List, Optional, Tuple, TypeVar, Union

from portfolio_cms.services.content_store import ContentStore, StoreResult
from portfolio_cms.services.notifications import Notifier
from portfolio_cms.services.realtime import Subscription, SubscriptionManager

logger = logging.getLogger(__name__)

S = TypeVar("S")

# Returns True when the user confirms a destructive action
Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


class ActionStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    INVALID = "invalid"
    CANCELLED = "cancelled"


@dataclass
class ActionResult:
    status: ActionStatus
    message: str
    data: Any = None

    @property
    def ok(self) -> bool:
        return self.status == ActionStatus.SUCCESS

    @classmethod
    def cancelled(cls) -> "ActionResult":
        return cls(ActionStatus.CANCELLED, "Cancelled")


class Binding(Generic[S]):
    """
    Snapshot holder bound to one or more collections.

    Subclasses implement _fetch() and usually _build(); refreshes are
    single-flight: a request made while one is running is folded into a
    single trailing re-fetch that every waiting caller shares.
    """

    collections: Tuple[str, ...] = ()

    def __init__(self, store: ContentStore, subscriptions: SubscriptionManager, notifier: Notifier):
        self.store = store
        self.subscriptions = subscriptions
        self.notifier = notifier
        self._snapshot: S = self.initial_state()
        self._subscriptions: List[Subscription] = []
        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_requested = False
        self._closed = False
        self.loaded = False

    def initial_state(self) -> S:
        return []  # type: ignore[return-value]

    @property
    def snapshot(self) -> S:
        return self._snapshot

    @property
    def mounted(self) -> bool:
        return bool(self._subscriptions)

    async def mount(self) -> S:
        """Subscribe to the bound collections and load the first snapshot."""
        self._closed = False
        if not self._subscriptions:
            self._subscriptions = [
                self.subscriptions.subscribe(collection, self.refresh)
                for collection in self.collections
            ]
        return await self.refresh()

    async def unmount(self) -> None:
        """Release subscriptions; results of in-flight fetches are ignored."""
        self._closed = True
        for subscription in self._subscriptions:
            subscription.release()
        self._subscriptions = []

    async def refresh(self) -> S:
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_requested = False
            self._refresh_task = asyncio.get_running_loop().create_task(self._run_refresh())
        else:
            self._refresh_requested = True
        await asyncio.shield(self._refresh_task)
        return self._snapshot

    async def _run_refresh(self) -> None:
        while True:
            self._refresh_requested = False
            result = await self._fetch()
            if self._closed:
                return
            if result.ok:
                try:
                    snapshot = self._build(result.data)
                except Exception as e:
                    logger.error(
                        f"{type(self).__name__} received rows it cannot read: {str(e)}",
                        exc_info=True
                    )
                else:
                    self._apply(snapshot)
                    self.loaded = True
            else:
                logger.warning(
                    f"{type(self).__name__} refresh failed, keeping previous snapshot: {result.error}"
                )
            if not self._refresh_requested:
                return

    async def _fetch(self) -> StoreResult:
        raise NotImplementedError

    def _build(self, data: Any) -> S:
        return data

    def _apply(self, snapshot: S) -> None:
        self._snapshot = snapshot

    async def _mutate(
        self,
        call: Awaitable[StoreResult],
        success_message: str,
        failure_message: Optional[str] = None,
    ) -> ActionResult:
        """
        Run a store call; notify, then refresh on success.
        failure_message replaces the store's own message when given.
        """
        result = await call
        if not result.ok:
            return self._fail(failure_message or result.error.message)
        self.notifier.success(success_message)
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, success_message, result.data)

    def _fail(self, message: str) -> ActionResult:
        self.notifier.error(message)
        return ActionResult(ActionStatus.FAILED, message)

    def _invalid(self, message: str) -> ActionResult:
        self.notifier.error(message)
        return ActionResult(ActionStatus.INVALID, message)


async def confirmed(confirm: Confirm, prompt: str) -> bool:
    answer = confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


def always(_prompt: str) -> bool:
    return True


def never(_prompt: str) -> bool:
    return False
