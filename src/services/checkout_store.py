"""Checkout session persistence with TTL expiry.

Two backends share one interface and are selected explicitly through
``CHECKOUT_STORE_BACKEND``; there is no silent fallback between them.

- ``memory``: volatile, process-local. Sessions vanish on restart and are
  expired best-effort on read and by a periodic sweep.
- ``supabase``: durable for the TTL window. Expired rows are filtered on read
  and deleted by the same periodic sweep.

Stores hold no business rules. They persist whatever the checkout service
hands them and keep the process-wide counters in an injected ``CheckoutStats``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import TYPE_CHECKING, Any

from src.core.checkout_stats import CheckoutStats, get_checkout_stats
from src.core.exceptions import CheckoutNotFoundError, StorageError
from src.models.checkout import CheckoutSessionRow, CheckoutSessionUpdate, CheckoutStatus
from src.schemas.checkout import CheckoutSession

if TYPE_CHECKING:
    from supabase import Client

logger = logging.getLogger(__name__)


@dataclass
class CheckoutStoreConfig:
    """Configuration for checkout session storage."""

    ttl_seconds: int = 86400  # 24 hours
    cleanup_interval_seconds: int = 300  # Sweep every 5 minutes
    max_size: int = 10000  # In-memory backend only

    @classmethod
    def from_settings(cls) -> "CheckoutStoreConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            ttl_seconds=settings.checkout_ttl_seconds,
            cleanup_interval_seconds=settings.checkout_cleanup_interval_seconds,
            max_size=settings.checkout_max_sessions,
        )


def merge_session(existing: CheckoutSession, fields: CheckoutSessionUpdate) -> CheckoutSession:
    """Merge partial fields over a session and refresh updated_at.

    The merged result is re-validated so nested values may be passed either
    as schema models or as plain JSON data.
    """
    merged = existing.model_dump()
    merged.update(fields)
    merged["updated_at"] = datetime.now(timezone.utc)
    return CheckoutSession.model_validate(merged)


class CheckoutStore(ABC):
    """Async key-value store for checkout sessions."""

    backend: str = "abstract"
    durability: str = "volatile"

    def __init__(
        self,
        config: CheckoutStoreConfig | None = None,
        stats: CheckoutStats | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            config: Optional store configuration.
            stats: Counters to report into. Defaults to the process-wide instance.
        """
        self.config = config or CheckoutStoreConfig()
        self.stats = stats if stats is not None else get_checkout_stats()
        self._cleanup_task: asyncio.Task | None = None

    @abstractmethod
    async def _insert(self, session: CheckoutSession) -> None: ...

    @abstractmethod
    async def get(self, checkout_id: str) -> CheckoutSession | None:
        """Get a session by id, or None if absent or expired."""

    @abstractmethod
    async def _replace(self, session: CheckoutSession) -> None: ...

    @abstractmethod
    async def delete(self, checkout_id: str) -> bool:
        """Delete a session. Returns whether it existed."""

    @abstractmethod
    async def count(self) -> int:
        """Count sessions currently stored and not expired."""

    @abstractmethod
    async def cleanup(self) -> int:
        """Remove expired sessions. Returns the number removed."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove every session. Returns the number removed."""

    async def create(self, session: CheckoutSession) -> CheckoutSession:
        """Persist a new session and count it as created.

        Raises:
            StorageError: If the backend write fails.
        """
        await self._insert(session)
        self.stats.record_created()
        logger.info("Created checkout: %s", session.checkout_id)
        return session

    async def update(self, checkout_id: str, fields: CheckoutSessionUpdate) -> CheckoutSession:
        """Merge fields over an existing session.

        Args:
            checkout_id: Session to update.
            fields: Partial fields; anything absent is left untouched.

        Returns:
            CheckoutSession: The merged session as stored.

        Raises:
            CheckoutNotFoundError: If the session does not exist.
            StorageError: If the backend read or write fails.
        """
        existing = await self.get(checkout_id)
        if existing is None:
            raise CheckoutNotFoundError(checkout_id)

        updated = merge_session(existing, fields)
        await self._replace(updated)

        if updated.status != existing.status:
            if updated.status == CheckoutStatus.COMPLETED:
                self.stats.record_completed()
            elif updated.status == CheckoutStatus.FAILED:
                self.stats.record_failed()

        logger.info("Updated checkout: %s -> %s", checkout_id, updated.status.value)
        return updated

    async def get_stats(self) -> dict[str, Any]:
        """Get store statistics for monitoring."""
        snapshot = self.stats.snapshot()
        return {
            "active_checkouts": await self.count(),
            "total_created": snapshot.total_created,
            "total_completed": snapshot.total_completed,
            "total_failed": snapshot.total_failed,
            "backend": self.backend,
            "durability": self.durability,
        }

    def _expires_at(self) -> float:
        return time.time() + self.config.ttl_seconds

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Checkout store cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Checkout store cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        """Background loop to cleanup expired sessions."""
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            try:
                count = await self.cleanup()
            except StorageError as e:
                logger.error("Checkout store cleanup failed: %s", e.message)
                continue
            if count > 0:
                logger.debug("Checkout store cleaned up %d expired sessions", count)


@dataclass
class StoredSession:
    """A stored session entry with expiration."""

    session: CheckoutSession
    expires_at: float

    def is_expired(self) -> bool:
        """Check if this entry has expired."""
        return time.time() > self.expires_at


class InMemoryCheckoutStore(CheckoutStore):
    """Thread-safe in-memory checkout store with TTL."""

    backend = "memory"
    durability = "volatile"

    def __init__(
        self,
        config: CheckoutStoreConfig | None = None,
        stats: CheckoutStats | None = None,
    ) -> None:
        super().__init__(config, stats)
        self._sessions: dict[str, StoredSession] = {}
        self._lock = Lock()

    async def _insert(self, session: CheckoutSession) -> None:
        with self._lock:
            if len(self._sessions) >= self.config.max_size:
                self._purge_expired()
            if len(self._sessions) >= self.config.max_size:
                logger.error("In-memory checkout store full (%d sessions)", len(self._sessions))
                raise StorageError(
                    f"Checkout store is full ({self.config.max_size} active sessions)"
                )
            self._sessions[session.checkout_id] = StoredSession(
                session=session.model_copy(deep=True),
                expires_at=self._expires_at(),
            )

    async def get(self, checkout_id: str) -> CheckoutSession | None:
        with self._lock:
            entry = self._sessions.get(checkout_id)
            if entry is None:
                return None

            if entry.is_expired():
                logger.debug("Checkout expired: %s", checkout_id)
                del self._sessions[checkout_id]
                return None

            return entry.session.model_copy(deep=True)

    async def _replace(self, session: CheckoutSession) -> None:
        with self._lock:
            entry = self._sessions.get(session.checkout_id)
            if entry is None:
                # Expired or deleted between read and write
                raise CheckoutNotFoundError(session.checkout_id)
            entry.session = session.model_copy(deep=True)

    async def delete(self, checkout_id: str) -> bool:
        with self._lock:
            existed = self._sessions.pop(checkout_id, None) is not None
        if existed:
            logger.info("Deleted checkout: %s", checkout_id)
        return existed

    async def count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._sessions.values() if not entry.is_expired())

    def _purge_expired(self) -> int:
        """Drop expired entries. Must be called with lock held."""
        expired_keys = [k for k, v in self._sessions.items() if v.is_expired()]
        for key in expired_keys:
            del self._sessions[key]
        return len(expired_keys)

    async def cleanup(self) -> int:
        with self._lock:
            return self._purge_expired()

    async def clear(self) -> int:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info("Cleared %d checkouts", count)
        return count


class SupabaseCheckoutStore(CheckoutStore):
    """Checkout store backed by a Supabase table.

    Rows are ``{id, data, expires_at}`` where ``data`` is the JSON dump of the
    session. Every backend exception surfaces as ``StorageError``.
    """

    backend = "supabase"
    durability = "durable-until-ttl"

    def __init__(
        self,
        client: "Client | None" = None,
        config: CheckoutStoreConfig | None = None,
        stats: CheckoutStats | None = None,
        table: str | None = None,
    ) -> None:
        """Initialize supabase-backed store.

        Args:
            client: Optional Supabase client for testing.
            config: Optional store configuration.
            stats: Counters to report into.
            table: Table name. Defaults to SUPABASE_CHECKOUT_TABLE.
        """
        super().__init__(config, stats)
        if client is None:
            from src.core.supabase import get_supabase_client
            client = get_supabase_client()
        if table is None:
            from src.core.config import get_settings
            table = get_settings().supabase_checkout_table
        self.client = client
        self.table = table

    def _expires_at_iso(self) -> str:
        return datetime.fromtimestamp(self._expires_at(), tz=timezone.utc).isoformat()

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    async def _insert(self, session: CheckoutSession) -> None:
        row: CheckoutSessionRow = {
            "id": session.checkout_id,
            "data": session.model_dump(mode="json"),
            "expires_at": self._expires_at_iso(),
        }
        try:
            self.client.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("Failed to store checkout %s: %s", session.checkout_id, str(e))
            raise StorageError(f"Failed to store checkout: {e}") from e

    async def get(self, checkout_id: str) -> CheckoutSession | None:
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("id", checkout_id)
                .gt("expires_at", self._now_iso())
                .maybe_single()
                .execute()
            )
        except Exception as e:
            logger.error("Failed to load checkout %s: %s", checkout_id, str(e))
            raise StorageError(f"Failed to load checkout: {e}") from e

        if not response or not response.data:
            return None
        return CheckoutSession.model_validate(response.data["data"])

    async def _replace(self, session: CheckoutSession) -> None:
        try:
            response = (
                self.client.table(self.table)
                .update({"data": session.model_dump(mode="json")})
                .eq("id", session.checkout_id)
                .execute()
            )
        except Exception as e:
            logger.error("Failed to update checkout %s: %s", session.checkout_id, str(e))
            raise StorageError(f"Failed to update checkout: {e}") from e

        if not response.data:
            raise CheckoutNotFoundError(session.checkout_id)

    async def delete(self, checkout_id: str) -> bool:
        try:
            response = self.client.table(self.table).delete().eq("id", checkout_id).execute()
        except Exception as e:
            raise StorageError(f"Failed to delete checkout: {e}") from e

        existed = bool(response.data)
        if existed:
            logger.info("Deleted checkout: %s", checkout_id)
        return existed

    async def count(self) -> int:
        try:
            response = (
                self.client.table(self.table)
                .select("id", count="exact")
                .gt("expires_at", self._now_iso())
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Failed to count checkouts: {e}") from e
        return response.count or 0

    async def cleanup(self) -> int:
        try:
            response = (
                self.client.table(self.table)
                .delete()
                .lt("expires_at", self._now_iso())
                .execute()
            )
        except Exception as e:
            raise StorageError(f"Failed to clean up checkouts: {e}") from e
        return len(response.data) if response.data else 0

    async def clear(self) -> int:
        try:
            response = self.client.table(self.table).delete().neq("id", "").execute()
        except Exception as e:
            raise StorageError(f"Failed to clear checkouts: {e}") from e
        count = len(response.data) if response.data else 0
        logger.info("Cleared %d checkouts", count)
        return count


# Global singleton instance
_checkout_store: CheckoutStore | None = None


def create_checkout_store(backend: str, config: CheckoutStoreConfig | None = None) -> CheckoutStore:
    """Build a store for the named backend.

    Raises:
        ValueError: If the backend name is unknown.
    """
    if backend == "memory":
        return InMemoryCheckoutStore(config)
    if backend == "supabase":
        return SupabaseCheckoutStore(config=config)
    raise ValueError(f"Unknown checkout store backend: {backend}")


def get_checkout_store() -> CheckoutStore:
    """Get or create the global checkout store instance."""
    global _checkout_store
    if _checkout_store is None:
        from src.core.config import get_settings
        settings = get_settings()
        _checkout_store = create_checkout_store(
            settings.checkout_store_backend,
            CheckoutStoreConfig.from_settings(),
        )
        logger.info(
            "Checkout store backend: %s (%s)", _checkout_store.backend, _checkout_store.durability
        )
    return _checkout_store


async def init_checkout_store() -> CheckoutStore:
    """Initialize checkout store with cleanup task. Call at app startup."""
    store = get_checkout_store()
    await store.start_cleanup_task()
    return store


async def shutdown_checkout_store() -> None:
    """Shutdown checkout store cleanup task. Call at app shutdown."""
    global _checkout_store
    if _checkout_store:
        await _checkout_store.stop_cleanup_task()
