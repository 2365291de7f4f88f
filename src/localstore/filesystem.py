"""
Filesystem Capability
Byte-oriented file operations run off the event loop
"""

import asyncio
import os
import shutil
from functools import partial
from typing import Any, Callable


class LocalFileSystem:
    """
    Async facade over the local filesystem.

    Blocking calls run in the loop's default executor. Subclass and override
    methods to substitute failures or in-memory behaviour in tests.
    """

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def exists(self, path: str) -> bool:
        return await self._run(os.path.exists, path)

    async def makedirs(self, path: str):
        await self._run(partial(os.makedirs, exist_ok=True), path)

    async def size(self, path: str) -> int:
        stat = await self._run(os.stat, path)
        return stat.st_size

    async def write_bytes(self, path: str, data: bytes):
        await self._run(self._write_file, path, data)

    async def read_bytes(self, path: str) -> bytes:
        return await self._run(self._read_file, path)

    async def copy(self, source: str, destination: str):
        await self._run(shutil.copyfile, source, destination)

    async def remove(self, path: str):
        await self._run(os.remove, path)

    def _write_file(self, path: str, data: bytes):
        with open(path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def _read_file(self, path: str) -> bytes:
        with open(path, 'rb') as f:
            return f.read()
