"""Client-side sync agent.

This module provides:
- ClientSyncAgent: per-session cache, optimistic edits, push/pull loop
- AgentConfig: intervals and retry policy

Architecture:
    mutate() ──► local cache (durable) ──► debounced push() ──► server
    pull loop (every pull_interval) ──► adopt newer server state or push

All state lives on the agent instance; two agents in one process never
share flags. ``is_syncing`` only keeps this session from overlapping its
own network calls. Ordering against other sessions is left to the
server's version/timestamp protocol.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from progresssync.client.api import APIError, ConflictError, ServerConflict, ServerDocument
from progresssync.client.edits import Edit, EditError
from progresssync.client.retry import TRANSIENT_ERRORS, Backoff, RetryPolicy
from progresssync.core.document import DaySnapshot, ProgressDocument, clone_days
from progresssync.core.types import Resolution, SyncState

if TYPE_CHECKING:
    from progresssync.client.state import LocalCache

logger = logging.getLogger(__name__)

ConflictHandler = Callable[[ServerConflict], Awaitable[Resolution | None]]


class DocumentAPI(Protocol):
    """The subset of HTTPClient the agent relies on."""

    @property
    def has_token(self) -> bool:
        """Whether a session identity is configured."""
        ...

    async def get_document(self) -> ServerDocument:
        """Fetch the authoritative document."""
        ...

    async def submit_document(
        self,
        days: list[DaySnapshot],
        version: int | None,
        last_updated: datetime | None,
    ) -> ServerDocument:
        """Submit local content."""
        ...

    async def override_document(self, days: list[DaySnapshot]) -> ServerDocument:
        """Replace the server document."""
        ...


@dataclass
class AgentConfig:
    """Configuration for ClientSyncAgent.

    Attributes:
        pull_interval: Seconds between background pulls.
        push_delay: Debounce before pushing after an edit.
        request_timeout: Upper bound on one push/pull round trip.
        retry: Backoff used while offline.
    """

    pull_interval: float = 20.0
    push_delay: float = 0.5
    request_timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)


class ClientSyncAgent:
    """Keeps one session's copy of an owner's document in sync.

    Usage:
        agent = ClientSyncAgent(api, cache, owner_id="alice")
        await agent.start()
        await agent.mutate(toggle_item(1, item_id))
        ...
        await agent.stop()
    """

    def __init__(
        self,
        api: DocumentAPI,
        cache: LocalCache,
        owner_id: str,
        config: AgentConfig | None = None,
        conflict_handler: ConflictHandler | None = None,
        on_status: Callable[[SyncState], None] | None = None,
        on_external_update: Callable[[ProgressDocument], None] | None = None,
    ) -> None:
        """Initialize the agent.

        Args:
            api: Server API client.
            cache: Durable local cache.
            owner_id: Owner whose document this session edits.
            config: Intervals and retry policy.
            conflict_handler: Asked to choose a Resolution when the server
                reports a conflict. Without one, the conflict waits for
                resolve_conflict().
            on_status: Called on every status change.
            on_external_update: Called when another session's changes
                replace the local document.
        """
        self._api = api
        self._cache = cache
        self._owner_id = owner_id
        self._config = config or AgentConfig()
        self._conflict_handler = conflict_handler
        self._on_status = on_status
        self._on_external_update = on_external_update

        # Session state
        self._document: ProgressDocument | None = None
        self._pending_changes = False
        self._is_syncing = False
        self._status = SyncState.IDLE
        self._pending_conflict: ServerConflict | None = None
        self._override_requested = False
        self._unpushed_edits: list[Edit] = []
        self._backoff = Backoff(self._config.retry)

        # Scheduling
        self._push_timer: asyncio.TimerHandle | None = None
        self._retry_timer: asyncio.TimerHandle | None = None
        self._pull_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    # === Properties ===

    @property
    def owner_id(self) -> str:
        """Owner of the document."""
        return self._owner_id

    @property
    def document(self) -> ProgressDocument | None:
        """Current local document."""
        return self._document

    @property
    def pending_changes(self) -> bool:
        """Whether local edits are not yet accepted by the server."""
        return self._pending_changes

    @property
    def is_syncing(self) -> bool:
        """Whether a network call of this session is in flight."""
        return self._is_syncing

    @property
    def status(self) -> SyncState:
        """Last reported status."""
        return self._status

    @property
    def pending_conflict(self) -> ServerConflict | None:
        """Conflict waiting for a user decision."""
        return self._pending_conflict

    # === Lifecycle ===

    def bootstrap(self) -> bool:
        """Load the local cache.

        Returns:
            True if a cached document was found.
        """
        cached = self._cache.load(self._owner_id)
        if cached is None:
            return False
        self._document = cached.to_document()
        self._pending_changes = cached.pending_changes
        logger.info(
            "Loaded cached document for %s (version %d, pending=%s)",
            self._owner_id,
            cached.version,
            cached.pending_changes,
        )
        return True

    async def start(self) -> None:
        """Bootstrap, pull once and start the periodic pull loop."""
        self.bootstrap()
        if self._api.has_token:
            await self.pull()
        self._pull_task = asyncio.create_task(self._pull_loop())

    async def stop(self) -> None:
        """Stop background work. Pending edits stay in the local cache."""
        for timer in (self._push_timer, self._retry_timer):
            if timer is not None:
                timer.cancel()
        self._push_timer = None
        self._retry_timer = None

        tasks = list(self._tasks)
        if self._pull_task is not None:
            tasks.append(self._pull_task)
            self._pull_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _pull_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.pull_interval)
            try:
                await self.pull()
            except Exception:
                # The loop must outlive a single bad round
                logger.exception("Background pull failed")

    # === Local edits ===

    async def mutate(self, edit: Edit) -> ProgressDocument:
        """Apply an edit locally and schedule a push.

        The edited copy is saved to the local cache before returning.

        Args:
            edit: Callable modifying a day list in place.

        Returns:
            The updated local document.

        Raises:
            RuntimeError: If no document has been loaded yet.
        """
        if self._document is None:
            raise RuntimeError("No document loaded; pull from the server first")

        days = self._document.copy_days()
        edit(days)
        self._document = ProgressDocument(
            owner_id=self._owner_id,
            days=days,
            version=self._document.version,
            last_updated=self._document.last_updated,
        )
        self._unpushed_edits.append(edit)
        self._pending_changes = True
        self._save()

        if self._api.has_token:
            self._schedule_push(self._config.push_delay)
        return self._document

    # === Network operations ===

    async def push(self) -> None:
        """Submit local content if anything is pending.

        No-op while another call of this session is in flight or while a
        conflict is waiting for the user.
        """
        if self._is_syncing:
            logger.debug("Push skipped: sync already in progress")
            return
        if self._document is None or not self._pending_changes:
            return
        if self._pending_conflict is not None:
            logger.debug("Push skipped: conflict awaiting resolution")
            return

        snapshot = self._document
        replay_from = len(self._unpushed_edits)
        conflict: ServerConflict | None = None

        self._is_syncing = True
        self._set_status(SyncState.SYNCING)
        try:
            result = await asyncio.wait_for(
                self._api.submit_document(
                    snapshot.copy_days(), snapshot.version, snapshot.last_updated
                ),
                timeout=self._config.request_timeout,
            )
        except ConflictError as e:
            conflict = e.conflict
        except TRANSIENT_ERRORS as e:
            self._go_offline(e)
        except APIError as e:
            logger.error("Push rejected: %s", e)
            self._set_status(SyncState.ERROR)
        else:
            self._adopt_pushed(result, replay_from)
        finally:
            self._is_syncing = False

        if conflict is not None:
            await self._handle_conflict(conflict)

    async def pull(self) -> None:
        """Fetch the server state and reconcile with the local cache.

        - Server ahead: adopt it, dropping local content.
        - Otherwise with pending edits: push them.
        - Otherwise: up to date.
        """
        if self._is_syncing:
            logger.debug("Pull skipped: sync already in progress")
            return

        self._is_syncing = True
        try:
            remote = await asyncio.wait_for(
                self._api.get_document(), timeout=self._config.request_timeout
            )
        except TRANSIENT_ERRORS as e:
            self._go_offline(e)
            return
        except APIError as e:
            logger.error("Pull rejected: %s", e)
            self._set_status(SyncState.ERROR)
            return
        finally:
            self._is_syncing = False

        self._backoff.reset()

        if self._pending_conflict is not None:
            logger.debug("Pull: conflict awaiting resolution, keeping local document")
            self._set_status(SyncState.CONFLICT)
            return

        if self._document is None:
            self._adopt(remote, pending=False)
            self._set_status(SyncState.SYNCED)
        elif remote.version > self._document.version:
            logger.info(
                "Server is ahead for %s (v%d > v%d), adopting server document",
                self._owner_id,
                remote.version,
                self._document.version,
            )
            self._adopt(remote, pending=False)
            self._set_status(SyncState.SYNCED)
            if self._on_external_update and self._document is not None:
                self._on_external_update(self._document)
        elif self._pending_changes:
            await self.push()
        else:
            self._set_status(SyncState.UP_TO_DATE)

    # === Conflicts ===

    async def resolve_conflict(self, resolution: Resolution) -> None:
        """Apply the user's choice for the pending conflict.

        Args:
            resolution: USE_SERVER drops local edits; KEEP_LOCAL overrides
                the server with the local document.

        Raises:
            RuntimeError: If there is no pending conflict.
        """
        conflict = self._pending_conflict
        if conflict is None:
            raise RuntimeError("No conflict to resolve")

        if resolution == Resolution.USE_SERVER:
            logger.info("Conflict resolved with server version %d", conflict.server_version)
            self._pending_conflict = None
            self._override_requested = False
            self._adopt(
                ServerDocument(
                    days=conflict.server_days,
                    version=conflict.server_version,
                    last_updated=conflict.server_last_updated,
                ),
                pending=False,
            )
            self._set_status(SyncState.SYNCED)
            return

        self._override_requested = True
        await self._force_push()

    async def _handle_conflict(self, conflict: ServerConflict) -> None:
        logger.warning(
            "Conflict with server version %d (%s), local edits kept",
            conflict.server_version,
            conflict.reason,
        )
        self._pending_conflict = conflict
        self._set_status(SyncState.CONFLICT)
        if self._conflict_handler is None:
            return
        resolution = await self._conflict_handler(conflict)
        if resolution is not None:
            await self.resolve_conflict(resolution)

    async def _force_push(self) -> None:
        if self._document is None:
            return
        if self._is_syncing:
            self._schedule_retry(self._config.push_delay)
            return

        replay_from = len(self._unpushed_edits)
        self._is_syncing = True
        self._set_status(SyncState.SYNCING)
        try:
            result = await asyncio.wait_for(
                self._api.override_document(self._document.copy_days()),
                timeout=self._config.request_timeout,
            )
        except TRANSIENT_ERRORS as e:
            self._go_offline(e)
            return
        except APIError as e:
            logger.error("Override rejected: %s", e)
            self._set_status(SyncState.ERROR)
            return
        finally:
            self._is_syncing = False

        logger.info("Local document kept, server now at version %d", result.version)
        self._pending_conflict = None
        self._override_requested = False
        self._adopt_pushed(result, replay_from)

    # === State transitions ===

    def _adopt(self, remote: ServerDocument, pending: bool) -> None:
        self._document = ProgressDocument(
            owner_id=self._owner_id,
            days=remote.days,
            version=remote.version,
            last_updated=remote.last_updated,
        )
        self._pending_changes = pending
        self._unpushed_edits = []
        self._save()

    def _adopt_pushed(self, result: ServerDocument, replay_from: int) -> None:
        self._backoff.reset()
        if self._retry_timer is not None:
            self._retry_timer.cancel()
            self._retry_timer = None

        # Edits made while the request was in flight are replayed on top of
        # what the server stored, which may be a merge with another session.
        days = clone_days(result.days)
        replayed: list[Edit] = []
        for edit in self._unpushed_edits[replay_from:]:
            try:
                edit(days)
            except EditError as e:
                logger.warning("Local edit no longer applies after sync: %s", e)
            else:
                replayed.append(edit)

        pending = bool(replayed)
        self._adopt(
            ServerDocument(days=days, version=result.version, last_updated=result.last_updated),
            pending=pending,
        )
        self._unpushed_edits = replayed
        self._set_status(SyncState.SYNCED)
        if pending:
            self._schedule_push(self._config.push_delay)

    def _go_offline(self, error: BaseException) -> None:
        delay = self._backoff.next_delay()
        logger.warning(
            "Server unreachable (%s), retrying in %.1fs",
            str(error) or type(error).__name__,
            delay,
        )
        self._set_status(SyncState.OFFLINE)
        self._schedule_retry(delay)

    def _set_status(self, status: SyncState) -> None:
        self._status = status
        if self._on_status:
            self._on_status(status)

    def _save(self) -> None:
        if self._document is not None:
            self._cache.save(self._document, self._pending_changes)

    # === Scheduling ===

    def _schedule_push(self, delay: float) -> None:
        if self._push_timer is not None:
            self._push_timer.cancel()
        loop = asyncio.get_running_loop()
        self._push_timer = loop.call_later(delay, self._spawn, self.push)

    def _schedule_retry(self, delay: float) -> None:
        if self._retry_timer is not None:
            self._retry_timer.cancel()
        loop = asyncio.get_running_loop()
        self._retry_timer = loop.call_later(delay, self._spawn, self._retry)

    def _spawn(self, func: Callable[[], Awaitable[None]]) -> None:
        task = asyncio.ensure_future(func())
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is None:
            return
        logger.error("Background sync failed", exc_info=error)
        if self._pending_conflict is None:
            self._set_status(SyncState.ERROR)

    async def _retry(self) -> None:
        if self._override_requested:
            await self._force_push()
        elif self._pending_changes:
            await self.push()
        else:
            await self.pull()
