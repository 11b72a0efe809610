"""File collaborators for import and export.

A source that yields ``None`` and a sink that returns ``False`` both mean the
user dismissed the file dialog; that is a normal outcome, not an error.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

logger = logging.getLogger(__name__)


class FileSource(Protocol):
    """Supplies raw document bytes, or ``None`` when the user cancelled."""

    async def read(self) -> Optional[bytes]: ...


class FileSink(Protocol):
    """Receives an exported payload; returns ``False`` when the user cancelled."""

    async def write(self, payload: bytes) -> bool: ...


class BytesFileSource:
    """Source over bytes that are already in memory (e.g. an HTTP body)."""

    def __init__(self, data: Optional[Union[bytes, str]]):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.data = data or None

    async def read(self) -> Optional[bytes]:
        return self.data


class PathFileSource:
    """Source reading a file chosen by the caller. ``path=None`` means cancelled."""

    def __init__(self, path: Optional[Union[str, Path]]):
        self.path = Path(path) if path else None

    async def read(self) -> Optional[bytes]:
        if self.path is None:
            return None
        logger.info(f"Reading import file {self.path}")
        return await asyncio.to_thread(self.path.read_bytes)


class PathFileSink:
    """Sink writing to a file chosen by the caller. ``path=None`` means cancelled."""

    def __init__(self, path: Optional[Union[str, Path]]):
        self.path = Path(path) if path else None

    async def write(self, payload: bytes) -> bool:
        if self.path is None:
            return False
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(self.path.write_bytes, payload)
        logger.info(f"Wrote {len(payload)} bytes to {self.path}")
        return True


def default_backup_filename(date_string: str) -> str:
    """Suggested file name for a backup taken on ``date_string`` (YYYY-MM-DD)."""
    return f"llm-desk-backup-{date_string}.json"
