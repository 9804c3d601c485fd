"""
Preconfigured handle to the hosted platform: auth, tables and object storage.
"""

from __future__ import annotations

from dataclasses import dataclass

from visionboard.auth import AuthClient
from visionboard.db import DbClient
from visionboard.storage import StorageClient


@dataclass
class BackendClient:
    auth: AuthClient
    db: DbClient
    storage: StorageClient
