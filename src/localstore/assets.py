"""
Asset Ingestion for the Local Content Store
Persists uploaded blobs to the assets directory and registers metadata documents
"""

import logging
import mimetypes
import os
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from .errors import (
    MetadataPersistError,
    MetadataUnavailableError,
    StorageWriteError,
    UnsupportedPayloadError,
)
from .filesystem import LocalFileSystem
from .helpers import epoch_ms, generate_asset_id
from .store import CREATED_AT_FIELD, Document, ID_FIELD, TYPE_FIELD, UPDATED_AT_FIELD

default_logger = logging.getLogger('localstore.assets')

FILE_ASSET_TYPE = 'sanity.fileAsset'
IMAGE_ASSET_TYPE = 'sanity.imageAsset'
ASSET_TYPES = {
    'file': FILE_ASSET_TYPE,
    'image': IMAGE_ASSET_TYPE
}
DEFAULT_MIME_TYPE = 'application/octet-stream'


@dataclass(frozen=True)
class PathRef:
    path: str
    name: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ByteBuffer:
    data: bytes


@dataclass(frozen=True)
class NamedBlob:
    data: bytes
    name: Optional[str] = None
    content_type: Optional[str] = None


AssetPayload = Union[PathRef, ByteBuffer, NamedBlob]


def as_payload(value: Any) -> AssetPayload:
    """
    Resolve a raw upload body into one of the payload variants.

    Bytes-like values become a ByteBuffer, paths become a PathRef and binary
    file objects are read into a NamedBlob named after the file.
    """
    if isinstance(value, (PathRef, ByteBuffer, NamedBlob)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ByteBuffer(bytes(value))
    if isinstance(value, (str, os.PathLike)):
        return PathRef(os.fspath(value))

    read = getattr(value, 'read', None)
    if callable(read):
        data = read()
        if not isinstance(data, (bytes, bytearray)):
            raise UnsupportedPayloadError('File objects must be opened in binary mode.')
        name = getattr(value, 'name', None)
        return NamedBlob(bytes(data), os.path.basename(name) if isinstance(name, str) else None)

    raise UnsupportedPayloadError(f"Unsupported body type for asset upload: {type(value).__name__}")


def asset_type_for(kind: str) -> str:
    return ASSET_TYPES.get(kind, kind)


@dataclass
class AssetMetadata:
    id: str
    type: str
    original_filename: str
    size: int
    mime_type: str
    url: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_document(self) -> Document:
        document: Document = {
            ID_FIELD: self.id,
            TYPE_FIELD: self.type,
            'originalFilename': self.original_filename,
            'size': self.size,
            'mimeType': self.mime_type,
            'url': self.url
        }
        if self.created_at:
            document[CREATED_AT_FIELD] = self.created_at
        if self.updated_at:
            document[UPDATED_AT_FIELD] = self.updated_at
        return document

    @classmethod
    def from_document(cls, document: Document) -> 'AssetMetadata':
        return cls(
            id=document[ID_FIELD],
            type=document[TYPE_FIELD],
            original_filename=document['originalFilename'],
            size=document['size'],
            mime_type=document['mimeType'],
            url=document['url'],
            created_at=document.get(CREATED_AT_FIELD),
            updated_at=document.get(UPDATED_AT_FIELD)
        )


@dataclass(frozen=True)
class ResolvedAsset:
    filename: str
    mime_type: str
    size: int
    extension: str


class AssetManager:
    def __init__(
        self,
        directory: str,
        create_document: Callable[[Document], Awaitable[Document]],
        filesystem: Optional[LocalFileSystem] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.directory = directory
        self.filesystem = filesystem or LocalFileSystem()
        self.logger = logger or default_logger
        self._create_document = create_document

    @property
    def url_prefix(self) -> str:
        return os.path.basename(os.path.normpath(self.directory))

    def local_path(self, url: str) -> str:
        """Filesystem path of the blob a metadata ``url`` points at."""
        return os.path.join(os.path.dirname(os.path.normpath(self.directory)), url)

    async def upload(
        self,
        kind: str,
        payload: AssetPayload,
        filename: Optional[str] = None,
        content_type: Optional[str] = None
    ) -> AssetMetadata:
        self.logger.debug(f"Asset upload called with kind={kind} payload={type(payload).__name__}")

        asset_id = generate_asset_id(kind)
        resolved = await self._resolve(payload, filename, content_type)

        await self._ensure_directory()

        local_filename = f"{asset_id}{resolved.extension}"
        local_path = os.path.join(self.directory, local_filename)
        await self._persist(payload, local_path)

        metadata = AssetMetadata(
            id=asset_id,
            type=asset_type_for(kind),
            original_filename=resolved.filename,
            size=resolved.size,
            mime_type=resolved.mime_type,
            url=f"{self.url_prefix}/{local_filename}"
        )

        try:
            stored = await self._create_document(metadata.to_document())
        except Exception as e:
            self.logger.error(f"Error storing asset metadata document for ID {asset_id}: {e}")
            await self._discard(local_path)
            raise MetadataPersistError(f"Failed to store asset metadata: {e}", asset_id) from e

        self.logger.info(f"Asset metadata document created for ID: {asset_id}")
        return AssetMetadata.from_document(stored)

    async def _resolve(
        self,
        payload: AssetPayload,
        filename: Optional[str],
        content_type: Optional[str]
    ) -> ResolvedAsset:
        if isinstance(payload, PathRef):
            original_filename = filename or payload.name or os.path.basename(payload.path)
            mime_type = (
                content_type
                or payload.content_type
                or mimetypes.guess_type(original_filename or payload.path)[0]
                or DEFAULT_MIME_TYPE
            )
            extension = os.path.splitext(original_filename)[1] or os.path.splitext(payload.path)[1]
            try:
                size = await self.filesystem.size(payload.path)
            except OSError as e:
                self.logger.error(f"Error getting file size for {payload.path}: {e}")
                raise MetadataUnavailableError(
                    f"Failed to get file size for {payload.path}: {e}"
                ) from e
        elif isinstance(payload, ByteBuffer):
            original_filename = filename or f"buffer-upload-{epoch_ms()}"
            mime_type = content_type or DEFAULT_MIME_TYPE
            extension = os.path.splitext(original_filename)[1]
            size = len(payload.data)
        elif isinstance(payload, NamedBlob):
            original_filename = filename or payload.name or f"blob-upload-{epoch_ms()}"
            mime_type = content_type or payload.content_type or DEFAULT_MIME_TYPE
            extension = os.path.splitext(original_filename)[1]
            size = len(payload.data)
        else:
            raise UnsupportedPayloadError(
                f"Unsupported body type for asset upload: {type(payload).__name__}"
            )

        if not original_filename:
            raise MetadataUnavailableError('Filename could not be determined for asset.')

        return ResolvedAsset(original_filename, mime_type, size, extension)

    async def _ensure_directory(self):
        try:
            if not await self.filesystem.exists(self.directory):
                await self.filesystem.makedirs(self.directory)
                self.logger.info(f"Created assets directory: {self.directory}")
        except OSError as e:
            self.logger.error(f"Error creating assets directory {self.directory}: {e}")
            raise StorageWriteError(f"Failed to create assets directory: {e}") from e

    async def _persist(self, payload: AssetPayload, local_path: str):
        try:
            if isinstance(payload, PathRef):
                await self.filesystem.copy(payload.path, local_path)
            else:
                await self.filesystem.write_bytes(local_path, payload.data)
        except OSError as e:
            self.logger.error(f"Error saving asset to {local_path}: {e}")
            raise StorageWriteError(f"Failed to save asset: {e}") from e

        self.logger.info(f"Asset saved to: {local_path}")

    async def _discard(self, local_path: str):
        try:
            await self.filesystem.remove(local_path)
            self.logger.warning(f"Cleaned up asset file: {local_path}")
        except OSError as e:
            self.logger.error(f"Error cleaning up asset file {local_path}: {e}")
