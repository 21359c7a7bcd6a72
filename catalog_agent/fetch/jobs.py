"""
Fetch Jobs Module
=================

Lifecycle of one adapter invocation. A job moves through
IDLE -> STARTED -> AWAITING_RESPONSE -> DONE, or ends in CANCELLED.

A response is accepted when the job leaves AWAITING_RESPONSE for DONE,
right after the last network round-trip and before parsing. Parsing and
result emission run synchronously after that point, so a cancel either
lands before acceptance (no results, no further signals) or after it
(a no-op, results are delivered).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from catalog_agent.core.enums import ErrorKind, JobState, MessageLevel
from catalog_agent.core.schema import Record
from catalog_agent.fetch.errors import ConfigurationError, ContractError, FetchError
from catalog_agent.fetch.messages import FetchMessage
from catalog_agent.fetch.request import FetchRequest, FetchResult, next_uid

if TYPE_CHECKING:
    from catalog_agent.fetch.adapters.base import BaseAdapter

logger = logging.getLogger(__name__)

# Job whose network work is running in the current task
current_job: ContextVar[FetchJob | None] = ContextVar("current_job", default=None)


class FetchJob:
    """
    One search against one adapter.

    Create through BaseAdapter.search(), which starts the job. Results
    are frozen records wrapped in FetchResult, delivered to on_result
    callbacks in the order the source returned them. on_done callbacks
    fire exactly once, when the job reaches a terminal state.
    """

    def __init__(self, adapter: BaseAdapter, request: FetchRequest) -> None:
        self.adapter = adapter
        self.request = request
        self.state = JobState.IDLE
        self.results: list[FetchResult] = []
        self.messages: list[FetchMessage] = []

        self._task: asyncio.Task[None] | None = None
        self._done = asyncio.Event()
        self._finished = False
        self._result_callbacks: list[Callable[[FetchResult], None]] = []
        self._done_callbacks: list[Callable[[FetchJob], None]] = []

    def __repr__(self) -> str:
        return f"{type(self).__name__}(source={self.source!r}, state={self.state.value})"

    @property
    def source(self) -> str:
        return self.adapter.name

    @property
    def done(self) -> bool:
        return self.state.is_terminal

    @property
    def in_flight(self) -> bool:
        """True while a network task is held by the job."""
        return self._task is not None

    def on_result(self, callback: Callable[[FetchResult], None]) -> None:
        self._result_callbacks.append(callback)

    def on_done(self, callback: Callable[[FetchJob], None]) -> None:
        """Register a completion callback; called immediately if already finished."""
        if self._finished:
            callback(self)
        else:
            self._done_callbacks.append(callback)

    def start(self) -> bool:
        """
        Start the job on the running event loop.

        Returns:
            True if started, False if the job was already started
        """
        if self.state != JobState.IDLE:
            logger.warning(f"{self!r} already started, ignoring start()")
            return False
        self.state = JobState.STARTED
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"{type(self).__name__}:{self.source}"
        )
        return True

    def cancel(self) -> bool:
        """
        Cancel the job.

        A no-op once the response has been accepted or the job has
        already been cancelled.

        Returns:
            True if this call cancelled the job
        """
        if self.state.is_terminal:
            return False
        self.state = JobState.CANCELLED
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        logger.debug(f"{self!r} cancelled")
        self._finish()
        return True

    async def wait(self) -> FetchJob:
        """Wait until the job is terminal."""
        await self._done.wait()
        return self

    def report(
        self,
        text: str,
        level: MessageLevel = MessageLevel.WARNING,
        kind: ErrorKind | None = None,
    ) -> None:
        """Record a message for this job and pass it to the adapter's listeners."""
        if self.state == JobState.CANCELLED:
            return
        message = FetchMessage(source=self.source, level=level, text=text, kind=kind)
        self.messages.append(message)
        self.adapter.report(message)

    async def _perform(self) -> Any:
        """Network stage; everything awaited happens here."""
        return await self.adapter.perform_search(self.request)

    def _complete(self, payload: Any) -> list[Record]:
        """Synchronous stage run after acceptance."""
        collection = self.adapter.new_collection(self.request)
        return self.adapter.parse_search(payload, collection)

    async def _run(self) -> None:
        token = current_job.set(self)
        try:
            self.state = JobState.AWAITING_RESPONSE
            payload = await self._perform()
            if self.state != JobState.AWAITING_RESPONSE:
                return
            # Accepted: from here on there is no suspension point
            self.state = JobState.DONE
            self._task = None
            for record in self._complete(payload):
                self._emit(record)
        except asyncio.CancelledError:
            # Task cancelled from outside rather than through cancel()
            if not self.state.is_terminal:
                self.state = JobState.CANCELLED
                self._task = None
                self._finish()
            raise
        except FetchError as e:
            self._fail(e)
        except Exception as e:
            logger.exception(f"Unexpected error in {self!r}: {e}")
            self._fail(FetchError(f"Unexpected error: {e}", self.source))
        finally:
            current_job.reset(token)
            if self.state != JobState.CANCELLED:
                self.state = JobState.DONE
                self._task = None
                self._finish()

    def _fail(self, error: FetchError) -> None:
        level = MessageLevel.ERROR if isinstance(error, ConfigurationError) else MessageLevel.WARNING
        if self.state == JobState.CANCELLED:
            return
        self.state = JobState.DONE
        self._task = None
        logger.warning(f"{self.source}: {error}")
        self.report(str(error), level=level, kind=error.kind)

    def _make_result(self, record: Record) -> FetchResult:
        result = FetchResult(uid=next_uid(), request=self.request, source=self.source, record=record)
        self.adapter.remember_result(result)
        return result

    def _emit(self, record: Record) -> None:
        result = self._make_result(record.freeze())
        self.results.append(result)
        for callback in self._result_callbacks:
            callback(result)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._done.set()
        callbacks, self._done_callbacks = self._done_callbacks, []
        for callback in callbacks:
            callback(self)


class ResolveJob(FetchJob):
    """
    Second-stage job turning one partial search result into a full record.

    Works on a copy of the result's record that keeps its identifier;
    yields at most one record.
    """

    def __init__(self, adapter: BaseAdapter, uid: int) -> None:
        result = adapter.result_for(uid)
        super().__init__(adapter, result.request if result else FetchRequest.empty())
        self.uid = uid
        self.partial = result.record if result else None

    @property
    def record(self) -> Record | None:
        """The resolved record, once the job is done."""
        return self.results[0].record if self.results else None

    async def _perform(self) -> Any:
        if self.partial is None:
            raise ContractError(f"Unknown result uid {self.uid}", self.source)
        self.adapter.check_config()
        return await self.adapter.resolve_entry(self.partial.copy(keep_id=True))

    def _complete(self, payload: Any) -> list[Record]:
        return [payload] if payload is not None else []

    def _make_result(self, record: Record) -> FetchResult:
        # Keeps the uid of the partial result it resolves
        return FetchResult(uid=self.uid, request=self.request, source=self.source, record=record)
