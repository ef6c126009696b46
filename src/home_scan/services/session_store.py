"""Session storage with TTL expiry and cascading image removal."""

import asyncio
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol, TypeVar

from home_scan.domain.errors import ValidationFailedError
from home_scan.domain.sessions import Image, Session

_logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", Session, Image)

_SESSION_FIELDS = frozenset({"location", "analysis_status", "security_report"})
_IMAGE_FIELDS = frozenset(
    {"parent_image_id", "analysis_status", "analysis", "llm_analysis"}
)


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(tz=UTC)


class SessionStore(Protocol):
    """Keyed storage of session state."""

    def create(self, session_id: str) -> Session:
        """Create a session, or return the existing one unchanged."""

    def get(self, session_id: str) -> Session | None:
        """Return a session if present and not expired."""

    def update(
        self, session_id: str, changes: Mapping[str, object]
    ) -> Session | None:
        """Merge fields into an existing session."""

    def delete(self, session_id: str) -> bool:
        """Delete a session and return whether it existed."""

    def add_image(
        self, session_id: str, image: Image, max_images: int | None = None
    ) -> Session | None:
        """Append an image to a session."""

    def get_image(self, session_id: str, image_id: str) -> Image | None:
        """Return an image from a session."""

    def update_image(
        self, session_id: str, image_id: str, changes: Mapping[str, object]
    ) -> Session | None:
        """Merge fields into an image."""

    def link_image(
        self, session_id: str, image_id: str, parent_image_id: str
    ) -> Image | None:
        """Make an image a related image of a primary image."""

    def remove_image(self, session_id: str, image_id: str) -> list[Image] | None:
        """Remove an image and its related images, returning what was removed."""

    def sweep_expired(self) -> int:
        """Evict every expired session and return how many were removed."""


@dataclass
class InMemorySessionStore(SessionStore):
    """Process-local session store guarded by a lock.

    Sessions handed out are deep copies, so every mutation goes through the
    store and runs as one read-modify-write under the lock.
    """

    ttl: timedelta = timedelta(hours=24)
    clock: Callable[[], datetime] = utc_now
    _sessions: dict[str, Session] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def create(self, session_id: str) -> Session:
        """Create a session, or return the existing one unchanged."""
        with self._lock:
            existing = self._live(session_id)
            if existing is not None:
                return existing.model_copy(deep=True)
            now = self.clock()
            session = Session(id=session_id, created_at=now, expires_at=now + self.ttl)
            self._sessions[session_id] = session
            _logger.info("Session created: id=%s", session_id)
            return session.model_copy(deep=True)

    def get(self, session_id: str) -> Session | None:
        """Return a session if present and not expired."""
        with self._lock:
            session = self._live(session_id)
            return session.model_copy(deep=True) if session else None

    def update(
        self, session_id: str, changes: Mapping[str, object]
    ) -> Session | None:
        """Merge location, status or report changes into a session."""
        _reject_unknown(changes, _SESSION_FIELDS, "session")
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            updated = _merge(session, changes)
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    def delete(self, session_id: str) -> bool:
        """Delete a session and return whether it existed."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def add_image(
        self, session_id: str, image: Image, max_images: int | None = None
    ) -> Session | None:
        """Append an image, enforcing the session cap and nesting depth."""
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            if max_images is not None and len(session.images) >= max_images:
                raise ValidationFailedError(
                    f"Maximum {max_images} images per session"
                )
            if image.parent_image_id is not None:
                parent = session.find_image(image.parent_image_id)
                if parent is not None and not parent.is_primary:
                    raise ValidationFailedError(
                        "Cannot link to an image that is already a related image"
                    )
            images = [*session.images, image.model_copy(deep=True)]
            self._sessions[session_id] = session.model_copy(update={"images": images})
            return self._sessions[session_id].model_copy(deep=True)

    def get_image(self, session_id: str, image_id: str) -> Image | None:
        """Return an image from a live session."""
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            image = session.find_image(image_id)
            return image.model_copy(deep=True) if image else None

    def update_image(
        self, session_id: str, image_id: str, changes: Mapping[str, object]
    ) -> Session | None:
        """Merge fields into an image of a live session."""
        _reject_unknown(changes, _IMAGE_FIELDS, "image")
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            images = list(session.images)
            for index, image in enumerate(images):
                if image.id == image_id:
                    images[index] = _merge(image, changes)
                    break
            else:
                return None
            self._sessions[session_id] = session.model_copy(update={"images": images})
            return self._sessions[session_id].model_copy(deep=True)

    def link_image(
        self, session_id: str, image_id: str, parent_image_id: str
    ) -> Image | None:
        """Relate an image to a primary image, keeping nesting one level deep."""
        if image_id == parent_image_id:
            raise ValidationFailedError("Cannot link image to itself")
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            child = session.find_image(image_id)
            parent = session.find_image(parent_image_id)
            if child is None or parent is None:
                return None
            if not parent.is_primary:
                raise ValidationFailedError(
                    "Cannot link to an image that is already a related image"
                )
            if any(image.parent_image_id == image_id for image in session.images):
                raise ValidationFailedError(
                    "Cannot link an image that has related images of its own"
                )
            updated = self.update_image(
                session_id, image_id, {"parent_image_id": parent_image_id}
            )
            return updated.find_image(image_id) if updated else None

    def remove_image(self, session_id: str, image_id: str) -> list[Image] | None:
        """Remove an image plus every image whose parent it is."""
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return None
            target = session.find_image(image_id)
            if target is None:
                return None
            removed = [target] + [
                image for image in session.images if image.parent_image_id == image_id
            ]
            removed_ids = {image.id for image in removed}
            remaining = [
                image for image in session.images if image.id not in removed_ids
            ]
            self._sessions[session_id] = session.model_copy(
                update={"images": remaining}
            )
            return [image.model_copy(deep=True) for image in removed]

    def sweep_expired(self) -> int:
        """Evict every expired session."""
        with self._lock:
            now = self.clock()
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if _is_expired(session, now)
            ]
            for session_id in expired:
                del self._sessions[session_id]
        if expired:
            _logger.info("Expired sessions swept: count=%s", len(expired))
        return len(expired)

    def _live(self, session_id: str) -> Session | None:
        """Return the stored session, evicting it when expired. Lock held."""
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if _is_expired(session, self.clock()):
            del self._sessions[session_id]
            _logger.info("Session expired on read: id=%s", session_id)
            return None
        return session


async def run_expiry_sweeper(store: SessionStore, interval_seconds: float) -> None:
    """Periodically evict expired sessions until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            store.sweep_expired()
        except Exception:
            _logger.exception("Session sweep failed")


def _is_expired(session: Session, now: datetime) -> bool:
    return now > session.expires_at


def _reject_unknown(
    changes: Mapping[str, object], allowed: frozenset[str], kind: str
) -> None:
    unknown = set(changes) - allowed
    if unknown:
        raise ValueError(f"Unsupported {kind} fields: {sorted(unknown)}")


def _merge(model: ModelT, changes: Mapping[str, object]) -> ModelT:
    """Return a validated copy of ``model`` with ``changes`` applied."""
    payload = model.model_dump()
    payload.update(changes)
    return type(model).model_validate(payload)
