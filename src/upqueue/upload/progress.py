"""Rich progress display for the upload queue.

Two tiers:

* **Overall** -- settled requests out of all requests seen
* **Per request** -- bytes sent for each request, with a status column
"""

from __future__ import annotations

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from upqueue.models import UploadStatus
from upqueue.upload.state import UploaderSnapshot


class UploadProgressTracker:
    """Rich progress tracker driven by orchestrator snapshots.

    Usage::

        tracker = UploadProgressTracker(labels={request.id: "big.iso"})
        with tracker:
            uploader.subscribe(tracker.update)
            await uploader.join()
    """

    def __init__(self, labels: dict[str, str] | None = None) -> None:
        self._labels = dict(labels or {})

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            TextColumn("{task.fields[status]}", style="dim"),
        )

        self._overall_task: TaskID | None = None
        self._request_tasks: dict[str, TaskID] = {}
        self._settled: set[str] = set()

        self._stats: dict[str, int] = {
            "succeeded": 0,
            "failed": 0,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the Rich progress display."""
        self._progress.start()
        self._overall_task = self._progress.add_task(
            "[green]Overall",
            total=0,
            status="starting...",
        )

    def stop(self) -> None:
        """Stop the Rich progress display."""
        self._progress.stop()

    def __enter__(self) -> UploadProgressTracker:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def update(self, snapshot: UploaderSnapshot) -> None:
        """Refresh every bar from *snapshot*; suitable as an orchestrator listener."""
        for request_id, record in snapshot.records.items():
            task = self._request_tasks.get(request_id)
            if task is None:
                label = _truncate_label(self._labels.get(request_id, request_id))
                task = self._progress.add_task(
                    f"[blue]{label}", total=record.total or None, status="queued"
                )
                self._request_tasks[request_id] = task

            if record.status is UploadStatus.ACTIVE:
                status = "uploading"
            elif record.status is UploadStatus.COMPLETED:
                status = "done"
            elif record.status is UploadStatus.ERRORED:
                status = f"[red]FAIL[/red] {record.error}"
            else:
                status = "queued"

            self._progress.update(
                task,
                completed=record.loaded,
                total=record.total or None,
                status=status,
            )

            if record.is_terminal and request_id not in self._settled:
                self._settled.add(request_id)
                if record.status is UploadStatus.COMPLETED:
                    self._stats["succeeded"] += 1
                else:
                    self._stats["failed"] += 1

        if self._overall_task is not None:
            self._progress.update(
                self._overall_task,
                total=len(self._request_tasks),
                completed=len(self._settled),
                status="uploading" if snapshot.is_uploading else "idle",
            )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict[str, int]:
        """Return a copy of the current statistics."""
        return dict(self._stats)


def _truncate_label(label: str, max_len: int = 40) -> str:
    """Keep the tail of long labels (URLs and paths end in the useful part)."""
    if len(label) <= max_len:
        return label
    return "..." + label[-(max_len - 3) :]
