import asyncio
import hashlib
import json
import logging
import pathlib
from typing import Any, Optional

import aiohttp
import aiofiles
import aiofiles.os

from .errors import IoError, ManifestError, NetworkError

log = logging.getLogger(__name__)

CHUNK_SIZE = 8192
DEFAULT_REQUEST_TIMEOUT = 60.0

# Shared aiohttp session, one per process
AIOHTTP_SESSION: Optional[aiohttp.ClientSession] = None
REQUEST_TIMEOUT = DEFAULT_REQUEST_TIMEOUT


def set_request_timeout(seconds: float) -> None:
    """Sets the wall-clock limit applied to every request from now on."""
    global REQUEST_TIMEOUT
    REQUEST_TIMEOUT = seconds


async def get_session() -> aiohttp.ClientSession:
    global AIOHTTP_SESSION
    if AIOHTTP_SESSION is None or AIOHTTP_SESSION.closed:
        AIOHTTP_SESSION = aiohttp.ClientSession()
    return AIOHTTP_SESSION


async def close_session() -> None:
    global AIOHTTP_SESSION
    if AIOHTTP_SESSION and not AIOHTTP_SESSION.closed:
        await AIOHTTP_SESSION.close()
    AIOHTTP_SESSION = None


async def get_file_sha1(file_path: pathlib.Path) -> str:
    """Calculates the SHA1 hash of a whole file asynchronously."""
    sha1_hash = hashlib.sha1()
    async with aiofiles.open(file_path, 'rb') as f:
        while True:
            chunk = await f.read(CHUNK_SIZE)
            if not chunk:
                break
            sha1_hash.update(chunk)
    return sha1_hash.hexdigest()


async def file_exists(file_path: pathlib.Path) -> bool:
    """Checks if a regular file exists asynchronously."""
    try:
        stats = await aiofiles.os.stat(file_path)
        return stats.st_mode & 0o100000 != 0
    except OSError:
        return False


async def verify(file_path: pathlib.Path, expected_sha1: str) -> bool:
    """
    Returns True iff the file exists and its SHA1 equals ``expected_sha1``
    (hex, case-insensitive). A missing or unreadable file is never an error.
    """
    if not await file_exists(file_path):
        return False
    try:
        current_sha1 = await get_file_sha1(file_path)
    except OSError as e:
        log.warning(f"Could not hash {file_path}: {e}")
        return False
    return current_sha1.lower() == expected_sha1.strip().lower()


async def _discard(file_path: pathlib.Path) -> None:
    try:
        if await aiofiles.os.path.exists(file_path):
            await aiofiles.os.remove(file_path)
    except OSError:
        pass


async def download(url: str, dest_path: pathlib.Path) -> None:
    """
    GETs ``url`` and streams the body to ``dest_path``, creating parent directories
    and overwriting any existing file.

    Raises NetworkError on a non-success status, transport failure or timeout,
    and IoError when the destination cannot be written. A partially written file
    is removed before raising.
    """
    try:
        await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
    except OSError as e:
        raise IoError(f"Could not create directory {dest_path.parent}: {e}") from e

    session = await get_session()
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as response:
            if not response.ok:
                raise NetworkError(url, f"HTTP {response.status} {response.reason}", status=response.status)
            async with aiofiles.open(dest_path, 'wb') as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
    except NetworkError:
        await _discard(dest_path)
        raise
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        await _discard(dest_path)
        raise NetworkError(url, f"Transport error: {e!r}") from e
    except OSError as e:
        await _discard(dest_path)
        raise IoError(f"Could not write {dest_path}: {e}") from e


async def fetch_bytes(url: str) -> bytes:
    """GETs ``url`` and returns the whole body."""
    session = await get_session()
    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)) as response:
            if not response.ok:
                raise NetworkError(url, f"HTTP {response.status} {response.reason}", status=response.status)
            return await response.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise NetworkError(url, f"Transport error: {e!r}") from e


async def fetch_text(url: str) -> str:
    return (await fetch_bytes(url)).decode('utf-8', errors='replace')


async def fetch_json(url: str) -> Any:
    """The single primitive behind every metadata endpoint."""
    body = await fetch_bytes(url)
    try:
        return json.loads(body)
    except ValueError as e:
        raise ManifestError(f"Invalid JSON document at {url}: {e}") from e
