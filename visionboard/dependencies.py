"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request

from visionboard.auth import AuthClient, Identity, InMemoryAuthClient, SupabaseAuthClient
from visionboard.backend import BackendClient
from visionboard.boards import BoardStore
from visionboard.config import get_settings
from visionboard.db import DbClient, InMemoryDbClient, SqlDbClient
from visionboard.demo import BlobCache, DemoEngine
from visionboard.goals import GoalStore
from visionboard.local_store import InMemoryLocalStore, LocalStore, RedisLocalStore
from visionboard.session import SessionResolver, extract_access_token
from visionboard.storage import InMemoryStorageClient, S3StorageClient, StorageClient

_auth_client: AuthClient | None = None
_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_local_store: LocalStore | None = None
_blob_cache: BlobCache | None = None


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if (
        settings.use_in_memory_backends
        or not settings.supabase_url
        or not settings.supabase_anon_key
    ):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = SupabaseAuthClient(
            url=settings.supabase_url,
            anon_key=settings.supabase_anon_key,
            timeout=settings.backend_timeout_seconds,
        )
    return _auth_client


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so in-memory state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_endpoint:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.storage_bucket,
            region=settings.storage_region or "",
            endpoint=settings.storage_endpoint,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_local_store() -> LocalStore:
    global _local_store
    if _local_store:
        return _local_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _local_store = RedisLocalStore(
            url=settings.redis_url, key_prefix=settings.demo_redis_prefix
        )
    else:
        _local_store = InMemoryLocalStore()
    return _local_store


def get_blob_cache() -> BlobCache:
    global _blob_cache
    if _blob_cache is None:
        _blob_cache = BlobCache()
    return _blob_cache


def reset_singletons() -> None:
    """Forget every cached client (tests swap settings between cases)."""
    global _auth_client, _db_client, _storage_client, _local_store, _blob_cache
    _auth_client = _db_client = _storage_client = _local_store = _blob_cache = None
    get_settings.cache_clear()


def get_backend(
    auth: AuthClient = Depends(get_auth_client),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
) -> BackendClient:
    return BackendClient(auth=auth, db=db, storage=storage)


def get_session_resolver(
    auth: AuthClient = Depends(get_auth_client),
) -> SessionResolver:
    return SessionResolver(auth)


def get_board_store(backend: BackendClient = Depends(get_backend)) -> BoardStore:
    settings = get_settings()
    return BoardStore(
        backend.db,
        backend.storage,
        signed_url_ttl_seconds=settings.signed_url_ttl_seconds,
        require_full_grid=settings.require_full_grid,
    )


def get_goal_store(
    backend: BackendClient = Depends(get_backend),
    boards: BoardStore = Depends(get_board_store),
) -> GoalStore:
    return GoalStore(backend.db, boards)


def get_demo_engine(
    store: LocalStore = Depends(get_local_store),
    blobs: BlobCache = Depends(get_blob_cache),
) -> DemoEngine:
    return DemoEngine(store, blobs)


def get_access_token(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> Optional[str]:
    cookie_token = request.cookies.get(get_settings().session_cookie_name)
    return extract_access_token(authorization, cookie_token)


def get_optional_identity(
    token: Optional[str] = Depends(get_access_token),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> Optional[Identity]:
    return resolver.resolve(token)


def get_identity(
    token: Optional[str] = Depends(get_access_token),
    resolver: SessionResolver = Depends(get_session_resolver),
) -> Identity:
    return resolver.require(token)
