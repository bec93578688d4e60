"""Request orchestrator for the upload queue.

Composes the upload primitives (job pool, part planner, progress
aggregator, uploader state, transport) into an engine that:

* Registers every submitted request as queued, in submission order
* Dispatches queued requests whenever one is submitted or settles, keeping
  at most ``config.threads`` requests in flight (no polling timer)
* Splits multi-destination requests into parts and runs them through the
  job pool, aggregating per-part progress into one record
* Settles every request exactly once and never lets a transport failure
  escape as an unhandled task exception

All state changes go through :func:`apply_event` on the event loop thread,
so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
from operator import attrgetter
from typing import Any, Callable, Iterable, Mapping

from upqueue.models import (
    UploadConfig,
    UploadOutcome,
    UploadRecord,
    UploadRequest,
    UploadStatus,
)
from upqueue.upload.aggregator import ProgressAggregator
from upqueue.upload.exceptions import (
    DuplicateRequestError,
    InvalidRequestError,
    UnknownRequestError,
)
from upqueue.upload.planner import plan_parts
from upqueue.upload.pool import run_jobs
from upqueue.upload.state import (
    RequestSubmitted,
    UploadCompleted,
    UploaderSnapshot,
    UploaderState,
    UploadEvent,
    UploadFailed,
    UploadProgressed,
    UploadStarted,
    apply_event,
)
from upqueue.upload.transport import Transport

logger = logging.getLogger(__name__)

RequestHook = Callable[[UploadRequest], None]
SnapshotListener = Callable[[UploaderSnapshot], None]


class UploadOrchestrator:
    """Main upload engine: schedules requests and drives the uploader state.

    Usage::

        async with UploadOrchestrator(transport, UploadConfig(threads=2)) as uploader:
            ids = uploader.submit(
                [UploadRequest(data, ("https://a", "https://b"))],
                on_complete=print,
            )
        # leaving the block waits for every request to settle
        uploader.records[ids[0]].progress  # 1.0

    Args:
        transport: Object with an async ``upload(chunk, destination, on_progress)``.
        config: Upload configuration; ``threads`` caps concurrent requests
            and, separately, concurrent parts of one request, so at most
            ``threads * threads`` transport calls are in flight overall.
        on_upload_start: Called with the request when it becomes active.
        on_upload_complete: Called with the request when it succeeds.
    """

    def __init__(
        self,
        transport: Transport,
        config: UploadConfig | None = None,
        *,
        on_upload_start: RequestHook | None = None,
        on_upload_complete: RequestHook | None = None,
    ) -> None:
        self._transport = transport
        self._config = config or UploadConfig()
        self._on_upload_start = on_upload_start
        self._on_upload_complete = on_upload_complete

        self._state = UploaderState()
        self._requests: dict[str, UploadRequest] = {}
        self._futures: dict[str, asyncio.Future[UploadOutcome]] = {}
        self._dispatched: set[str] = set()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[SnapshotListener] = []

    async def __aenter__(self) -> UploadOrchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        if exc_type is None:
            await self.join()

    # ------------------------------------------------------------------
    # Binding-layer surface
    # ------------------------------------------------------------------

    @property
    def config(self) -> UploadConfig:
        return self._config

    @property
    def snapshot(self) -> UploaderSnapshot:
        """Current ``(is_uploading, records)`` view."""
        return self._state.snapshot()

    @property
    def is_uploading(self) -> bool:
        """True while any submitted request has not settled."""
        return self._state.is_uploading

    @property
    def records(self) -> Mapping[str, UploadRecord]:
        return self._state.snapshot().records

    def get(self, request_id: str) -> UploadRecord:
        return self._state.get(request_id)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call *listener* with a fresh snapshot after every state change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        requests: UploadRequest | Iterable[UploadRequest],
        on_complete: Callable[[Any], None] | None = None,
    ) -> str | list[str]:
        """Queue one request or a batch of requests.

        The whole batch is validated before anything is queued.  Must be
        called while an event loop is running.

        Args:
            requests: A single request or an iterable of requests.
            on_complete: Called once when everything submitted here has
                settled, with an :class:`UploadOutcome` for a single request
                or a list of outcomes (submission order) for a batch.

        Returns:
            The request id, or the list of ids for a batch.

        Raises:
            InvalidRequestError: A request has no destinations.
            DuplicateRequestError: A request id was already submitted.
        """
        is_batch = not isinstance(requests, UploadRequest)
        batch = list(requests) if is_batch else [requests]
        self._validate(batch)
        loop = asyncio.get_running_loop()

        futures = []
        for request in batch:
            self._requests[request.id] = request
            future: asyncio.Future[UploadOutcome] = loop.create_future()
            self._futures[request.id] = future
            futures.append(future)
            self._apply(RequestSubmitted(request.id, request.size))
            logger.debug(
                "Queued %s (%d bytes -> %d destination(s))",
                request.label,
                request.size,
                len(request.destinations),
            )

        if on_complete is not None:
            self._spawn(self._report_completion(futures, on_complete, is_batch))

        self._schedule()

        ids = [request.id for request in batch]
        return ids if is_batch else ids[0]

    async def run(
        self, requests: UploadRequest | Iterable[UploadRequest]
    ) -> UploadOutcome | list[UploadOutcome]:
        """Submit *requests* and wait for their outcomes."""
        ids = self.submit(requests)
        if isinstance(ids, str):
            return await self.outcome(ids)
        return [await self.outcome(request_id) for request_id in ids]

    async def outcome(self, request_id: str) -> UploadOutcome:
        """Wait for one request to settle and return its outcome."""
        try:
            future = self._futures[request_id]
        except KeyError:
            raise UnknownRequestError(request_id) from None
        return await asyncio.shield(future)

    async def join(self) -> None:
        """Wait until every submitted request (and completion callback) is done.

        Requests submitted while waiting are waited for as well.
        """
        while True:
            pending: list[asyncio.Future[Any]] = [
                f for f in self._futures.values() if not f.done()
            ]
            pending.extend(t for t in self._tasks if not t.done())
            if not pending:
                return
            await asyncio.wait(pending)

    def _validate(self, batch: list[UploadRequest]) -> None:
        seen: set[str] = set()
        for request in batch:
            if not request.destinations:
                raise InvalidRequestError(
                    f"Request {request.id!r} has no destinations"
                )
            if request.id in self._requests or request.id in seen:
                raise DuplicateRequestError(request.id)
            seen.add(request.id)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _schedule(self) -> None:
        """Dispatch queued requests until ``threads`` are in flight.

        State is re-read before every dispatch: a listener or hook may submit
        (and so re-enter this method) while a request is being started.
        """
        while True:
            queue = self._state.queue
            in_flight = sum(1 for rid in queue if rid in self._dispatched)
            if in_flight >= self._config.threads:
                return
            request_id = next(
                (rid for rid in queue if rid not in self._dispatched), None
            )
            if request_id is None:
                return

            request = self._requests[request_id]
            self._dispatched.add(request_id)
            self._apply(UploadStarted(request_id))
            logger.info("Starting upload of %s", request.label)
            self._call_hook(self._on_upload_start, request)
            self._spawn(self._run_request(request))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    async def _run_request(self, request: UploadRequest) -> None:
        try:
            if request.is_partitioned:
                data = await self._upload_parts(request)
            else:
                data = await self._upload_whole(request)
        except Exception as exc:
            logger.warning("Upload of %s failed: %s", request.label, exc)
            self._settle(request, UploadOutcome(error=exc))
        else:
            logger.info("Upload of %s complete", request.label)
            self._call_hook(self._on_upload_complete, request)
            self._settle(request, UploadOutcome(data=data))

    async def _upload_whole(self, request: UploadRequest) -> Any:
        def on_progress(loaded: int, total: int) -> None:
            self._report_progress(request.id, loaded, total or request.size)

        return await self._transport.upload(
            request.payload, request.destinations[0], on_progress
        )

    async def _upload_parts(self, request: UploadRequest) -> list[Any]:
        """Upload every part, then return part results in destination order.

        All parts run to settlement even after one fails; the error raised
        is the failure whose settlement arrived first.
        """
        parts = plan_parts(request.size, request.destinations)
        aggregator = ProgressAggregator(len(parts), request.size)

        def part_job(part):
            def on_progress(loaded: int, total: int) -> None:
                aggregator.update(part.index, loaded)
                self._report_progress(request.id, aggregator.loaded, aggregator.total)

            async def job() -> Any:
                chunk = request.payload[part.start : part.end]
                return await self._transport.upload(chunk, part.destination, on_progress)

            return job

        settlements = await run_jobs([part_job(p) for p in parts], self._config.threads)

        failures = [s for s in settlements if not s.ok]
        if failures:
            first = min(failures, key=attrgetter("sequence"))
            logger.debug(
                "%d of %d parts of %s failed (first: part %d)",
                len(failures),
                len(parts),
                request.label,
                first.index,
            )
            raise first.error
        return [s.value for s in settlements]

    # ------------------------------------------------------------------
    # State updates
    # ------------------------------------------------------------------

    def _apply(self, event: UploadEvent) -> None:
        self._state = apply_event(self._state, event)
        if not self._listeners:
            return
        snapshot = self._state.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener %r failed", listener)

    def _report_progress(self, request_id: str, loaded: int, total: int) -> None:
        record = self._state.get(request_id)
        if record.status is not UploadStatus.ACTIVE:
            logger.debug(
                "Ignoring progress for %s in status %s", request_id, record.status.value
            )
            return
        self._apply(UploadProgressed(request_id, loaded, total))

    def _settle(self, request: UploadRequest, outcome: UploadOutcome) -> None:
        """Apply the terminal event and resolve the completion future, once."""
        future = self._futures[request.id]
        if future.done():
            logger.debug("Request %s already settled", request.id)
            return

        if outcome.ok:
            self._apply(UploadCompleted(request.id, outcome.data))
        else:
            self._apply(UploadFailed(request.id, outcome.error))
        future.set_result(outcome)

        self._schedule()

    @staticmethod
    def _call_hook(hook: RequestHook | None, request: UploadRequest) -> None:
        if hook is None:
            return
        try:
            hook(request)
        except Exception:
            logger.exception("Hook %r failed for %s", hook, request.label)

    @staticmethod
    async def _report_completion(
        futures: list[asyncio.Future[UploadOutcome]],
        on_complete: Callable[[Any], None],
        is_batch: bool,
    ) -> None:
        # Shielded so cancelling this task leaves the request futures to _settle.
        outcomes = list(await asyncio.gather(*(asyncio.shield(f) for f in futures)))
        try:
            on_complete(outcomes if is_batch else outcomes[0])
        except Exception:
            logger.exception("on_complete callback failed")
