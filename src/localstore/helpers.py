"""
Helper Functions for the Local Content Store
Clock and identifier utilities used throughout the store
"""

import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Callable


Clock = Callable[[], str]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_document_id() -> str:
    return uuid.uuid4().hex


def generate_asset_id(kind: str) -> str:
    return f"{kind}-{epoch_ms()}-{secrets.token_hex(8)}"
