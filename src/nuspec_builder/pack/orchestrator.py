"""Sequential external packing of generated manifests."""

from __future__ import annotations

import logging
import queue
import subprocess
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable, Literal, Sequence

LOGGER = logging.getLogger(__name__)

JobState = Literal["QUEUED", "RUNNING", "EXITED", "LAUNCH_FAILED", "TIMED_OUT", "CANCELLED", "ERRORED"]
LAUNCH_ERRORS: tuple[type[Exception], ...] = (OSError, ValueError, subprocess.SubprocessError)

OutputSink = Callable[[str], None]
Launcher = Callable[..., "subprocess.Popen[str]"]


@dataclass(slots=True)
class PackJob:
    """One tool invocation against one manifest."""

    index: int
    manifest_path: Path
    state: JobState = "QUEUED"
    return_code: int | None = None
    error_message: str | None = None
    output_lines: int = 0
    started_mono: float | None = None
    finished_mono: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == "EXITED" and self.return_code == 0


@dataclass(frozen=True, slots=True)
class PackSummary:
    """Aggregate outcome of one ``pack_all`` call."""

    jobs: tuple[PackJob, ...]
    duration_sec: float

    def _count(self, state: JobState) -> int:
        return sum(1 for job in self.jobs if job.state == state)

    @property
    def succeeded(self) -> int:
        return sum(1 for job in self.jobs if job.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for job in self.jobs if job.state == "EXITED" and job.return_code != 0)

    @property
    def launch_failed(self) -> int:
        return self._count("LAUNCH_FAILED")

    @property
    def timed_out(self) -> int:
        return self._count("TIMED_OUT")

    @property
    def cancelled(self) -> int:
        return self._count("CANCELLED")

    @property
    def errored(self) -> int:
        return self._count("ERRORED")

    @property
    def ok(self) -> bool:
        return self.succeeded == len(self.jobs)

    def counts(self) -> dict[str, int]:
        return {
            "jobs_total": len(self.jobs),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "launch_failed": self.launch_failed,
            "timed_out": self.timed_out,
            "cancelled": self.cancelled,
            "errored": self.errored,
        }


class PackOrchestrator:
    """Run ``<tool> pack <manifest>`` for each manifest with bounded concurrency.

    Jobs leave a FIFO queue; each worker starts one process, drains its stdout on
    a reader thread, and only pulls the next job after the process has exited.
    ``pack_all`` blocks on a completion event that is set once every worker has
    finished, or immediately when there is nothing to pack.
    """

    def __init__(
        self,
        tool_path: Path | str,
        *,
        concurrency: int = 1,
        timeout_seconds: float | None = None,
        extra_args: Sequence[str] = (),
        output_sink: OutputSink | None = None,
        launcher: Launcher = subprocess.Popen,
        logger: logging.Logger | None = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {timeout_seconds}")
        self.tool_path = Path(tool_path)
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds
        self.extra_args = tuple(extra_args)
        self._logger = logger or LOGGER
        self._output_sink = output_sink or self._log_output_line
        self._launcher = launcher

        self._queue: queue.Queue[PackJob] = queue.Queue()
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._cancelled = threading.Event()
        self._running: dict[int, subprocess.Popen[str]] = {}
        self._terminated: set[int] = set()
        self._active_workers = 0

    def _log_output_line(self, line: str) -> None:
        self._logger.info("pack.output %s", line)

    def command_for(self, manifest_path: Path) -> list[str]:
        """Argument vector for one packing run."""

        return [str(self.tool_path), "pack", str(manifest_path), *self.extra_args]

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self, terminate_running: bool = False) -> None:
        """Stop launching queued jobs, optionally terminating running processes."""

        self._cancelled.set()
        self._logger.warning("pack.cancel_requested terminate_running=%s", terminate_running)
        if not terminate_running:
            return
        with self._lock:
            running = list(self._running.items())
            self._terminated.update(index for index, _ in running)
        for index, process in running:
            self._logger.warning("pack.terminating job=%s pid=%s", index, process.pid)
            process.terminate()

    def pack_all(self, manifest_paths: Iterable[Path]) -> PackSummary:
        """Pack every manifest and block until all jobs have finished.

        A cancel request only applies to the call that is in progress; each call
        starts with a cleared cancellation state.
        """

        jobs = [PackJob(index=index, manifest_path=Path(path)) for index, path in enumerate(manifest_paths, start=1)]
        started_mono = time.monotonic()
        self._done.clear()
        self._cancelled.clear()
        with self._lock:
            self._terminated.clear()
        for job in jobs:
            self._queue.put(job)

        worker_count = min(self.concurrency, len(jobs))
        self._logger.info(
            "pack.start tool=%s jobs=%s concurrency=%s timeout_seconds=%s",
            self.tool_path,
            len(jobs),
            worker_count,
            self.timeout_seconds,
        )
        if worker_count == 0:
            self._done.set()
        else:
            with self._lock:
                self._active_workers = worker_count
            for worker_idx in range(worker_count):
                threading.Thread(target=self._worker, name=f"pack-worker-{worker_idx}", daemon=True).start()

        self._done.wait()
        summary = PackSummary(jobs=tuple(jobs), duration_sec=round(time.monotonic() - started_mono, 3))
        self._logger.info("pack.finished %s duration_sec=%.2f", summary.counts(), summary.duration_sec)
        return summary

    def _worker(self) -> None:
        try:
            while True:
                try:
                    job = self._queue.get_nowait()
                except queue.Empty:
                    break
                if self._cancelled.is_set():
                    job.state = "CANCELLED"
                    self._logger.info("pack.job_cancelled job=%s manifest=%s", job.index, job.manifest_path)
                    continue
                try:
                    self._run_job(job)
                except Exception as exc:
                    job.state = "ERRORED"
                    job.error_message = f"{type(exc).__name__}: {exc}"
                    job.finished_mono = time.monotonic()
                    self._logger.exception("pack.job_error job=%s manifest=%s", job.index, job.manifest_path)
        finally:
            with self._lock:
                self._active_workers -= 1
                last_worker = self._active_workers == 0
            if last_worker:
                self._done.set()

    def _run_job(self, job: PackJob) -> None:
        command = self.command_for(job.manifest_path)
        try:
            process = self._launcher(
                command,
                stdout=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except LAUNCH_ERRORS as exc:
            job.state = "LAUNCH_FAILED"
            job.error_message = str(exc)
            self._logger.error("pack.launch_failed job=%s manifest=%s error=%s", job.index, job.manifest_path, exc)
            return

        job.started_mono = time.monotonic()
        job.state = "RUNNING"
        with self._lock:
            self._running[job.index] = process
        self._logger.info("pack.job_started job=%s pid=%s manifest=%s", job.index, process.pid, job.manifest_path)

        reader = threading.Thread(
            target=self._drain_output,
            args=(job, process),
            name=f"pack-reader-{job.index}",
            daemon=True,
        )
        reader.start()
        try:
            job.return_code = process.wait(timeout=self.timeout_seconds)
            job.state = "EXITED"
        except subprocess.TimeoutExpired:
            self._logger.error(
                "pack.job_timeout job=%s manifest=%s timeout_seconds=%s",
                job.index,
                job.manifest_path,
                self.timeout_seconds,
            )
            process.kill()
            job.return_code = process.wait()
            job.state = "TIMED_OUT"
            job.error_message = f"timed out after {self.timeout_seconds}s"
        finally:
            reader.join()
            with self._lock:
                self._running.pop(job.index, None)
                terminated = job.index in self._terminated
            job.finished_mono = time.monotonic()

        if terminated and job.state == "EXITED":
            job.state = "CANCELLED"
            job.error_message = "terminated by cancel request"
        if job.succeeded:
            self._logger.info("pack.job_exited job=%s return_code=%s", job.index, job.return_code)
        else:
            self._logger.warning(
                "pack.job_failed job=%s state=%s return_code=%s manifest=%s",
                job.index,
                job.state,
                job.return_code,
                job.manifest_path,
            )

    def _drain_output(self, job: PackJob, process: subprocess.Popen[str]) -> None:
        stream: Any = process.stdout
        if stream is None:
            return
        with stream:
            for raw_line in stream:
                job.output_lines += 1
                self._output_sink(raw_line.rstrip("\r\n"))


def pack_manifests(
    manifest_paths: Sequence[Path],
    tool_path: Path,
    *,
    concurrency: int = 1,
    timeout_seconds: float | None = None,
    extra_args: Sequence[str] = (),
    output_sink: OutputSink | None = None,
    launcher: Launcher = subprocess.Popen,
    logger: logging.Logger | None = None,
) -> PackSummary:
    """Convenience wrapper that packs manifests with a fresh orchestrator."""

    orchestrator = PackOrchestrator(
        tool_path,
        concurrency=concurrency,
        timeout_seconds=timeout_seconds,
        extra_args=extra_args,
        output_sink=output_sink,
        launcher=launcher,
        logger=logger,
    )
    return orchestrator.pack_all(manifest_paths)
