"""Runs planned tasks concurrently with integrity gating and bounded retries.

A task moves Pending -> Running -> (Verified | Retrying | Failed). Retryable
errors (network, digest mismatch) stay inside the task until the attempt cap is
reached, after which it fails with RetryExhausted. Within a group the first
failure cancels every sibling still running.
"""
import asyncio
import logging
import pathlib
from dataclasses import dataclass
from typing import Awaitable, List, Optional, Sequence, TypeVar

import aiofiles
import aiofiles.os
from tqdm.asyncio import tqdm

from . import download
from .errors import IntegrityError, IoError, NetworkError, RetryExhausted
from .planner import Task
from .provider import AssetProvider

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
ASSET_WORKERS = 5

T = TypeVar('T')


@dataclass(frozen=True)
class TaskResult:
    task: Task
    path: Optional[pathlib.Path]  # None when a verify-only task was skipped
    attempts: int
    downloads: int


class GroupScope:
    """
    Tasks spawned in a scope never outlive it. ``join`` waits for the given
    tasks and, on the first failure, cancels everything in the scope and
    re-raises that failure.
    """

    def __init__(self, name: str):
        self.name = name
        self._tasks: List[asyncio.Task] = []

    def spawn(self, coro: Awaitable[T]) -> 'asyncio.Task[T]':
        task = asyncio.ensure_future(coro)
        self._tasks.append(task)
        return task

    async def join(self, tasks: Sequence['asyncio.Task[T]']) -> List[T]:
        """
        Waits for ``tasks`` while watching every task of the scope, so a failure
        anywhere in the scope aborts the join, not only one among ``tasks``.
        """
        pending = set(self._tasks) | set(tasks)
        while not all(task.done() for task in tasks):
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
            await self._raise_first_failure(tasks)
        await self._raise_first_failure(tasks)
        return [task.result() for task in tasks]

    async def _raise_first_failure(self, joined: Sequence[asyncio.Task]) -> None:
        for task in [*self._tasks, *(t for t in joined if t not in self._tasks)]:
            if task.done() and not task.cancelled() and task.exception() is not None:
                error = task.exception()
                log.debug(f"{self.name}: cancelling remaining tasks after failure: {error}")
                await self.cancel()
                raise error

    async def cancel(self) -> None:
        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def __aenter__(self) -> 'GroupScope':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            await self.cancel()
        else:
            await self.join(self._tasks)


def parse_published_sha1(text: str, url: str) -> str:
    """``.sha1`` companions hold the hex digest, sometimes followed by a file name."""
    tokens = text.split()
    if not tokens:
        raise NetworkError(url, "Empty digest document")
    return tokens[0].lower()


class Executor:

    def __init__(self, provider: AssetProvider, *, max_attempts: int = MAX_ATTEMPTS,
                 asset_workers: int = ASSET_WORKERS, progress: bool = True):
        self.provider = provider
        self.max_attempts = max_attempts
        self.progress = progress
        # Concurrency permit for the asset group of this install
        self.asset_permits = asyncio.Semaphore(asset_workers)

    async def run_task(self, task: Task) -> TaskResult:
        if task.blob is not None:
            return await self._materialize_blob(task)
        if task.verify_only:
            return await self._verify_existing(task)
        return await self._fetch(task)

    async def _fetch(self, task: Task) -> TaskResult:
        downloads = 0
        force_download = False
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            log.debug(f"Running {task.name} (attempt {attempt}/{self.max_attempts})")
            try:
                expected_sha1 = task.digest
                if task.digest_url is not None:
                    expected_sha1 = parse_published_sha1(await download.fetch_text(task.digest_url), task.digest_url)

                if force_download or not await download.file_exists(task.path):
                    log.info(f"Downloading {task.name}")
                    downloads += 1
                    await download.download(task.url, task.path)

                if expected_sha1 is not None:
                    try:
                        actual_sha1 = await download.get_file_sha1(task.path)
                    except OSError as e:
                        raise IoError(f"Could not hash {task.path}: {e}") from e
                    if actual_sha1.lower() != expected_sha1.lower():
                        raise IntegrityError(task.path, expected_sha1, actual_sha1)

                log.debug(f"Verified {task.name}")
                return TaskResult(task, task.path, attempt, downloads)

            except (NetworkError, IntegrityError) as error:
                last_error = error
                # A present but wrong file is overwritten on the next attempt
                force_download = isinstance(error, IntegrityError)
                log.warning(f"Retrying {task.name} after attempt {attempt}/{self.max_attempts}: {error}")

        log.error(f"Giving up on {task.name} after {self.max_attempts} attempts: {last_error}")
        raise RetryExhausted(task.name, self.max_attempts, last_error) from last_error

    async def _verify_existing(self, task: Task) -> TaskResult:
        if not await download.file_exists(task.path):
            log.info(f"Skipping {task.name}, replaced by the graphics shim")
            return TaskResult(task, None, 1, 0)
        if not await download.verify(task.path, task.digest):
            log.error(f"Existing {task.name} does not match its digest")
            # Nothing can be re-downloaded for these, so a mismatch is terminal
            raise IntegrityError(task.path, task.digest, None)
        log.debug(f"Verified {task.name}")
        return TaskResult(task, task.path, 1, 0)

    async def _materialize_blob(self, task: Task) -> TaskResult:
        data = await self.provider.read_blob(task.blob)
        try:
            if await download.file_exists(task.path):
                async with aiofiles.open(task.path, 'rb') as f:
                    if await f.read() == data:
                        log.debug(f"{task.name} already up to date")
                        return TaskResult(task, task.path, 1, 0)
            await aiofiles.os.makedirs(task.path.parent, exist_ok=True)
            async with aiofiles.open(task.path, 'wb') as f:
                await f.write(data)
        except OSError as e:
            log.error(f"Could not write {task.name} to {task.path}: {e}")
            raise IoError(f"Could not write {task.path}: {e}") from e
        log.info(f"Wrote {task.name} to {task.path}")
        return TaskResult(task, task.path, 1, 0)

    async def run_group(self, name: str, tasks: Sequence[Task], bounded: bool = False) -> List[TaskResult]:
        """
        Runs every task of a group concurrently and returns their results in
        task order. ``bounded`` groups share the install's asset permits.
        """
        log.info(f"{name}: checking {len(tasks)} files...")
        pbar = tqdm(total=len(tasks), desc=name, unit="file", leave=False, disable=not self.progress)

        async def run_one(task: Task) -> TaskResult:
            if bounded:
                async with self.asset_permits:
                    result = await self.run_task(task)
            else:
                result = await self.run_task(task)
            pbar.update(1)
            return result

        try:
            async with GroupScope(name) as scope:
                handles = [scope.spawn(run_one(task)) for task in tasks]
                results = await scope.join(handles)
        finally:
            pbar.close()

        log.info(f"{name}: complete.")
        return results
