"""
Concurrent artifact downloads.

Files are only checked by size, never by content hash: a corrupted file of
the right size is considered satisfied.
"""
import asyncio
import enum
import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple

import aiofiles
import aiofiles.os
import aiohttp

from .errors import ArtifactFetchFailed
from .resolver import ArtifactTask

log = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 20
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_DELAY = 0.5
# Some historical asset objects are gone from the remote store for good.
FAILURE_TOLERANCE = 5

Fetch = Callable[[str], Awaitable[bytes]]
ProgressCallback = Callable[[int, int], None]


class DownloadOutcome(enum.Enum):
    SATISFIED = 'satisfied'
    FETCHED = 'fetched'
    FAILED = 'failed'


@dataclass
class RunOutcome:
    total: int
    tolerance: int = FAILURE_TOLERANCE
    satisfied: int = 0
    fetched: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: List[ArtifactFetchFailed] = field(default_factory=list)
    outcomes: List[Tuple[ArtifactTask, DownloadOutcome]] = field(default_factory=list)

    @property
    def remaining(self) -> int:
        return self.total - self.satisfied - self.fetched - self.failed

    @property
    def success(self) -> bool:
        return not self.cancelled and self.failed <= self.tolerance


class HttpFetcher:
    """Fetches whole response bodies through one shared aiohttp session."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __call__(self, url: str) -> bytes:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        async with self._session.get(url) as response:
            response.raise_for_status()
            return await response.read()


async def needs_fetch(task: ArtifactTask, force: bool = False) -> bool:
    """A task is fetched when forced, when its file is missing, or when a known size differs."""
    if force:
        return True
    try:
        stats = await aiofiles.os.stat(task.path)
    except OSError:
        return True
    return task.size > 0 and stats.st_size != task.size


class DownloadOrchestrator:
    """
    Runs artifact tasks either in parallel over a fixed number of slots or
    strictly in order.

    Cancellation is checked before each task is dispatched. Once the cancel
    event is set no new fetch starts and `run` returns a cancelled outcome
    right away, in both modes. Fetches already in flight are left to finish
    on their own without further retries, and their results are not
    counted.
    """

    def __init__(self, fetch: Optional[Fetch] = None, parallel: bool = True,
                 concurrency: int = DEFAULT_CONCURRENCY, timeout: float = DEFAULT_TIMEOUT,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS, retry_delay: float = DEFAULT_RETRY_DELAY,
                 tolerance: int = FAILURE_TOLERANCE):
        self.fetch = fetch
        self.parallel = parallel
        self.concurrency = max(1, concurrency)
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.tolerance = tolerance
        self._inflight = set()

    async def run(self, tasks: Iterable[ArtifactTask], concurrency: Optional[int] = None,
                  force: bool = False, cancel: Optional[asyncio.Event] = None,
                  progress: Optional[ProgressCallback] = None) -> RunOutcome:
        tasks = list(tasks)
        cancel = cancel or asyncio.Event()
        limit = max(1, concurrency or self.concurrency)
        outcome = RunOutcome(total=len(tasks), tolerance=self.tolerance)
        log.info(f"Downloading {len(tasks)} files ({'parallel x' + str(limit) if self.parallel else 'sequential'})")

        if self.fetch is not None:
            return await self._dispatch(tasks, limit, force, cancel, progress, outcome, self.fetch)

        fetcher = HttpFetcher(self.timeout)
        try:
            return await self._dispatch(tasks, limit, force, cancel, progress, outcome, fetcher)
        finally:
            if self._inflight:
                # Abandoned fetches still use the session; close it once they are done.
                closer = asyncio.ensure_future(self._close_when_idle(fetcher, list(self._inflight)))
                self._inflight.add(closer)
                closer.add_done_callback(self._inflight.discard)
            else:
                await fetcher.close()

    @staticmethod
    async def _close_when_idle(fetcher: HttpFetcher, inflight):
        await asyncio.gather(*inflight, return_exceptions=True)
        await fetcher.close()

    async def _dispatch(self, tasks, limit, force, cancel, progress, outcome, fetch) -> RunOutcome:
        if self.parallel:
            await self._run_parallel(tasks, limit, force, cancel, progress, outcome, fetch)
        else:
            await self._run_sequential(tasks, force, cancel, progress, outcome, fetch)

        if outcome.cancelled:
            log.warning(f"Download cancelled with {outcome.remaining} of {outcome.total} files unsettled")
        else:
            log.info(f"Download finished: {outcome.fetched} fetched, {outcome.satisfied} already present, "
                     f"{outcome.failed} failed")
        return outcome

    async def _run_sequential(self, tasks, force, cancel, progress, outcome, fetch):
        for task in tasks:
            if cancel.is_set():
                outcome.cancelled = True
                return
            if not await needs_fetch(task, force):
                self._settle(outcome, task, DownloadOutcome.SATISFIED, progress)
                continue
            future = self._track(self._fetch_with_retry(task, fetch, cancel))
            if not await self._race(future, cancel) or cancel.is_set():
                outcome.cancelled = True
                return
            result, error = future.result()
            self._settle(outcome, task, result, progress, error)

    async def _run_parallel(self, tasks, limit, force, cancel, progress, outcome, fetch):
        semaphore = asyncio.Semaphore(limit)
        pending = []

        async def worker(task: ArtifactTask):
            try:
                result, error = await self._fetch_with_retry(task, fetch, cancel)
                if not cancel.is_set():
                    self._settle(outcome, task, result, progress, error)
            finally:
                semaphore.release()

        for task in tasks:
            if cancel.is_set():
                outcome.cancelled = True
                return
            if not await needs_fetch(task, force):
                self._settle(outcome, task, DownloadOutcome.SATISFIED, progress)
                continue
            if not await self._acquire_slot(semaphore, cancel):
                outcome.cancelled = True
                return
            pending.append(self._track(worker(task)))

        await self._wait_inflight(pending, cancel, outcome)

    def _track(self, coro) -> asyncio.Future:
        """Schedules a fetch and keeps it referenced until it finishes, even if the run stops waiting."""
        future = asyncio.ensure_future(coro)
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)
        return future

    @staticmethod
    async def _race(future: asyncio.Future, cancel: asyncio.Event) -> bool:
        """Waits for `future` unless cancel is set first. Returns whether the future finished."""
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({future, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_waiter.cancel()
        return future.done()

    @staticmethod
    async def _acquire_slot(semaphore: asyncio.Semaphore, cancel: asyncio.Event) -> bool:
        """Waits for a free slot; returns False, holding nothing, if cancelled first."""
        if cancel.is_set():
            return False
        acquire = asyncio.ensure_future(semaphore.acquire())
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({acquire, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_waiter.cancel()
        if acquire.done() and not acquire.cancelled():
            if cancel.is_set():
                semaphore.release()
                return False
            return True
        acquire.cancel()
        return False

    async def _wait_inflight(self, pending, cancel, outcome):
        if not pending:
            return
        cancel_waiter = asyncio.ensure_future(cancel.wait())
        try:
            waiting = set(pending)
            while waiting:
                done, _ = await asyncio.wait(waiting | {cancel_waiter},
                                             return_when=asyncio.FIRST_COMPLETED)
                if cancel_waiter in done:
                    outcome.cancelled = True
                    return
                waiting -= done
        finally:
            cancel_waiter.cancel()

    async def _fetch_with_retry(self, task: ArtifactTask, fetch: Fetch, cancel: asyncio.Event):
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            if cancel.is_set():
                log.debug(f"Not retrying {task.url}: download cancelled")
                return DownloadOutcome.FAILED, None
            try:
                data = await asyncio.wait_for(fetch(task.url), self.timeout)
                await write_atomic(task.path, data)
                return DownloadOutcome.FETCHED, None
            except Exception as error:
                last_error = error
                if attempt < self.max_attempts:
                    log.warning(f"Attempt {attempt}/{self.max_attempts} for {task.url} failed: {error}")
                    await asyncio.sleep(self.retry_delay)
        log.error(f"Error downloading {task.url}: {last_error}")
        return DownloadOutcome.FAILED, ArtifactFetchFailed(task.url, task.path, last_error)

    @staticmethod
    def _settle(outcome: RunOutcome, task: ArtifactTask, result: DownloadOutcome,
                progress: Optional[ProgressCallback], error: Optional[ArtifactFetchFailed] = None):
        # Runs without awaiting, so concurrent workers cannot interleave inside it.
        if result is DownloadOutcome.SATISFIED:
            outcome.satisfied += 1
        elif result is DownloadOutcome.FETCHED:
            outcome.fetched += 1
        else:
            outcome.failed += 1
            if error is not None:
                outcome.failures.append(error)
        outcome.outcomes.append((task, result))
        if progress:
            progress(outcome.remaining, outcome.total)


async def write_atomic(path: pathlib.Path, data: bytes):
    """Writes to a sibling temporary file, then renames it over the destination."""
    path = pathlib.Path(path)
    await aiofiles.os.makedirs(path.parent, exist_ok=True)
    partial = path.with_name(path.name + '.part')
    try:
        async with aiofiles.open(partial, 'wb') as f:
            await f.write(data)
        await aiofiles.os.replace(partial, path)
    except BaseException:
        try:
            if await aiofiles.os.path.exists(partial):
                await aiofiles.os.remove(partial)
        except OSError:
            pass
        raise


def read_task_list(path) -> List[ArtifactTask]:
    """Reads the plain-text task list format: one ``url::path::size`` per line."""
    tasks = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            parts = line.strip().split('::')
            if len(parts) < 2:
                continue
            size = int(parts[2]) if len(parts) > 2 and parts[2] else 0
            tasks.append(ArtifactTask(parts[0], pathlib.Path(parts[1]), size))
    return tasks


def write_task_list(path, tasks: Iterable[ArtifactTask]):
    with open(path, 'w', encoding='utf-8') as f:
        for task in tasks:
            f.write(f"{task.url}::{os.fspath(task.path)}::{task.size}\n")
