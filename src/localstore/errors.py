"""
Exceptions for the Local Content Store
Error taxonomy shared by the store, transactions, assets and the data API
"""

from typing import Optional


class LocalStoreError(Exception):
    pass


class DuplicateIdError(LocalStoreError, ValueError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f'Document with _id "{document_id}" already exists.')


class NotFoundError(LocalStoreError, LookupError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f'Document with _id "{document_id}" not found.')


class TransactionStateError(LocalStoreError, RuntimeError):
    pass


class AssetError(LocalStoreError):
    pass


class UnsupportedPayloadError(AssetError):
    pass


class MetadataUnavailableError(AssetError):
    pass


class StorageWriteError(AssetError):
    pass


class MetadataPersistError(AssetError):
    def __init__(self, message: str, asset_id: Optional[str] = None):
        self.asset_id = asset_id
        super().__init__(message)


class RemoteError(LocalStoreError):
    def __init__(self, message: str, error_type: Optional[str] = None):
        self.error_type = error_type
        super().__init__(message)
