"""
Encoder job orchestration.

One external encoder process per source. Foreground jobs block until the
encoder exits; background jobs write their output to a per-job log file and
are reaped later with ``drain``. The optional concurrency cap is enforced
after the fact: a spawn that reaches the cap immediately drains jobs until the
count is back in bounds, so the active count may briefly touch the cap.
"""
from __future__ import annotations

import enum
import itertools
import os
import re
import subprocess
import time
from dataclasses import dataclass, field

from play_ripper.types import MetadataRecord
from play_ripper.utils.hls import PlaylistNormalizer, remove_temp_files
from play_ripper.utils.logger import LOGS_DIR, logger
from play_ripper.utils.subtitles import subtitles_path_for, write_subtitles


ENCODER_ARGS = ["-c", "copy", "-bsf:a", "aac_adtstoasc"]

POLL_INTERVAL = 0.1

_UNSAFE_LOG_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


class JobState(enum.Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    SIGNALED = "signaled"
    SPAWN_FAILED = "spawn_failed"


@dataclass
class Job:
    handle: int
    source_url: str
    output_path: str
    log_path: str | None = None
    process: subprocess.Popen | None = None
    state: JobState = JobState.RUNNING
    exit_code: int | None = None
    signal: int | None = None
    temp_files: list[str] = field(default_factory=list)

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process else None

    @property
    def succeeded(self) -> bool:
        return self.state is JobState.COMPLETED and self.exit_code == 0

    def describe(self) -> str:
        if self.state is JobState.RUNNING:
            return "running"
        if self.state is JobState.SPAWN_FAILED:
            return "could not start"
        if self.state is JobState.SIGNALED:
            return f"killed by signal {self.signal}"
        if self.exit_code == 0:
            return "completed (exit 0)"
        return f"failed (exit {self.exit_code})"


def log_file_name(output_path: str, handle: int) -> str:
    base = os.path.splitext(os.path.basename(output_path))[0]
    safe = _UNSAFE_LOG_CHARS_RE.sub("_", base).strip("._") or "job"
    return f"{safe}.{handle}.log"


class Orchestrator:
    """Spawns encoder processes and tracks the background ones until reaped."""

    def __init__(
        self,
        normalizer: PlaylistNormalizer,
        encoder: list[str] | str = "ffmpeg",
        max_jobs: int | None = None,
        log_dir: str | None = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        self.normalizer = normalizer
        self.encoder = [encoder] if isinstance(encoder, str) else list(encoder)
        self.max_jobs = max_jobs if max_jobs and max_jobs > 0 else None
        self.log_dir = log_dir or os.path.join(LOGS_DIR, "jobs")
        self.poll_interval = poll_interval
        self.active: dict[int, Job] = {}
        # Every job that reached a terminal state, in the order it got there
        self.finished: list[Job] = []
        self._handles = itertools.count(1)

    def build_command(
        self,
        input_url: str,
        output_path: str,
        overwrite: bool = False,
        extra_args: list[str] | None = None,
    ) -> list[str]:
        cmd = [*self.encoder, *(extra_args or []), "-i", input_url, *ENCODER_ARGS, output_path]
        if overwrite:
            cmd.append("-y")
        return cmd

    # -- spawn --

    def spawn(
        self,
        record: MetadataRecord,
        output_path: str,
        *,
        background: bool = False,
        overwrite: bool = False,
        subtitles: str | None = None,
    ) -> Job:
        """Start the encoder for one resolved source.

        Foreground jobs are returned already finished. Background jobs are
        returned running and stay in ``active`` until drained.
        """
        if subtitles:
            try:
                write_subtitles(subtitles_path_for(output_path), subtitles, overwrite=overwrite)
            except OSError as e:
                logger.warning(f"Could not write subtitles, continuing without them: {e}")

        stream_url = record.stream_url or record.url
        stream = self.normalizer.normalize(stream_url)
        if stream.is_local:
            logger.info(f"Encoding from local playlist copy: {stream.url}")
        cmd = self.build_command(stream.url, output_path, overwrite, stream.extra_args)
        handle = next(self._handles)
        job = Job(handle, record.url, output_path, temp_files=list(stream.temp_files))

        logger.info(f"Output file: {output_path}")
        logger.debug(f"Encoder command: {' '.join(cmd)}")
        if background:
            self._start_background(job, cmd)
        else:
            self._run_foreground(job, cmd)
        return job

    def _run_foreground(self, job: Job, cmd: list[str]) -> None:
        try:
            job.process = subprocess.Popen(cmd)
        except OSError as e:
            self._spawn_failed(job, e)
            return
        job.process.wait()
        self._finish(job)

    def _start_background(self, job: Job, cmd: list[str]) -> None:
        job.log_path = os.path.join(self.log_dir, log_file_name(job.output_path, job.handle))
        try:
            os.makedirs(self.log_dir, exist_ok=True)
            with open(job.log_path, "wb") as log:
                job.process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.DEVNULL,
                    stdout=log,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,
                )
        except OSError as e:
            self._spawn_failed(job, e)
            return

        self.active[job.handle] = job
        logger.info(f"Job {job.handle} started in background (pid {job.pid}), log: {job.log_path}")
        self._admit()

    def _spawn_failed(self, job: Job, error: OSError) -> None:
        job.state = JobState.SPAWN_FAILED
        self.finished.append(job)
        remove_temp_files(job.temp_files)
        logger.error(f"Job {job.handle} ({job.source_url}) could not start the encoder: {error}")

    def _admit(self) -> None:
        if self.max_jobs is None or len(self.active) < self.max_jobs:
            return
        overflow = len(self.active) - self.max_jobs
        self.drain(overflow if overflow > 0 else 1)

    # -- reap --

    def _finish(self, job: Job) -> Job:
        code = job.process.returncode
        if code < 0:
            job.state = JobState.SIGNALED
            job.signal = -code
        else:
            job.state = JobState.COMPLETED
            job.exit_code = code
        remove_temp_files(job.temp_files)
        self.finished.append(job)

        message = f"Job {job.handle} ({job.source_url}): {job.describe()}"
        if job.succeeded:
            logger.info(message)
        else:
            logger.error(message)
        return job

    def wait_any(self) -> Job:
        """Block until any active job exits, remove it from ``active`` and return it."""
        if not self.active:
            raise RuntimeError("No active jobs to wait for")
        while True:
            for handle, job in list(self.active.items()):
                if job.process.poll() is not None:
                    del self.active[handle]
                    return self._finish(job)
            time.sleep(self.poll_interval)

    def drain(self, n: int) -> list[Job]:
        """Reap ``n`` jobs in the order they finish."""
        if n > len(self.active):
            logger.warning(f"Asked to drain {n} jobs but only {len(self.active)} are running")
            n = len(self.active)
        return [self.wait_any() for _ in range(max(0, n))]

    def drain_all(self) -> list[Job]:
        return self.drain(len(self.active))
