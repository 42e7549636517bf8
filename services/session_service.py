from __future__ import annotations

import logging
import os
import threading
import uuid
from collections import OrderedDict
from typing import Optional
from dotenv import load_dotenv

from models.image import Image
from models.stencil_image import StencilImage
from models.stencil_settings import StencilSettings
from models.errors import InvalidImageError, StencilError
from services.stencil_service import StencilService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class StencilSession:
    """
    State of one user's editing session: the current source image, the
    current settings and the last stencil that was committed for display.

    Every render request takes a new generation number.  A finished
    computation is committed only if its generation is still the latest,
    so a slow, superseded request can never overwrite a newer result.
    """

    def __init__(self,
                 session_id: str = None,
                 stencil_service: StencilService = None,
                 debounce_ms: float = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.stencil_service = stencil_service or StencilService()
        if debounce_ms is None:
            debounce_ms = float(os.getenv("SESSION_DEBOUNCE_MS", "150"))
        self.debounce_seconds = debounce_ms / 1000.0

        self.source: Optional[Image] = None
        self.settings: StencilSettings = self.stencil_service.defaults
        self.stencil: Optional[StencilImage] = None
        self.stencil_generation = 0
        self.last_error: Optional[Exception] = None

        self._generation = 0
        self._in_flight = 0
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    # ─── State ────────────────────────────────────────────────────
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_processing(self) -> bool:
        return self._in_flight > 0

    def load(self, image: Image) -> None:
        """Replace the source image; anything still running for the old one is dropped."""
        with self._lock:
            self._cancel_pending()
            self.source = image
            self.stencil = None
            self.last_error = None
            self._generation += 1
        logger.info(f"Session {self.session_id}: loaded {image.width}x{image.height} image")

    def reset(self) -> None:
        """Forget the image and result, restore default settings."""
        with self._lock:
            self._cancel_pending()
            self.source = None
            self.stencil = None
            self.last_error = None
            self.settings = self.stencil_service.defaults
            self._generation += 1

    def update(self, **changes) -> StencilSettings:
        """Merge a partial settings change, e.g. one slider moving."""
        with self._lock:
            self.settings = self.settings.with_changes(**changes).normalized()
            return self.settings

    # ─── Last request wins ────────────────────────────────────────
    def _next_generation(self, settings: StencilSettings | None) -> tuple[int, Image, StencilSettings]:
        with self._lock:
            if self.source is None:
                raise InvalidImageError("No image loaded in this session")
            if settings is not None:
                self.settings = settings.normalized()
            self._generation += 1
            return self._generation, self.source, self.settings

    def commit(self, generation: int, stencil: StencilImage) -> bool:
        """
        Store ``stencil`` as the displayed result if ``generation`` is
        still the latest request.  Returns False (and drops it) otherwise.
        """
        with self._lock:
            if generation != self._generation:
                logger.debug(
                    f"Session {self.session_id}: discarding stale generation "
                    f"{generation} (latest {self._generation})"
                )
                return False
            self.stencil = stencil
            self.stencil_generation = generation
            self.last_error = None
            return True

    def _compute(self, generation: int, image: Image, settings: StencilSettings) -> Optional[StencilImage]:
        with self._lock:
            self._in_flight += 1
        try:
            stencil = self.stencil_service.generate_stencil(image, settings)
        except Exception as err:
            with self._lock:
                if generation == self._generation:
                    self.last_error = err
            if isinstance(err, StencilError):
                logger.error(f"Session {self.session_id}: processing failed: {err}")
            else:
                logger.exception(f"Session {self.session_id}: unexpected processing error")
            raise
        finally:
            with self._lock:
                self._in_flight -= 1
        return stencil if self.commit(generation, stencil) else None

    def render(self, settings: StencilSettings = None) -> Optional[StencilImage]:
        """
        Synchronous request.  Returns the committed stencil, or None when
        a newer request superseded this one while it was computing.
        On failure the previous stencil stays in place and the error propagates.
        """
        generation, image, current = self._next_generation(settings)
        return self._compute(generation, image, current)

    # ─── Debounced rendering ──────────────────────────────────────
    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _run_scheduled(self, generation: int, image: Image, settings: StencilSettings) -> None:
        if generation != self._generation:
            return
        try:
            self._compute(generation, image, settings)
        except Exception:
            # already logged and recorded in last_error; previous stencil stays displayed
            pass

    def schedule(self, settings: StencilSettings = None) -> int:
        """
        Debounced request: computation starts after a quiet period.  A new
        call within that period cancels the pending one.  Returns the
        generation number assigned to this request.
        """
        generation, image, current = self._next_generation(settings)
        timer = threading.Timer(
            self.debounce_seconds, self._run_scheduled, args=(generation, image, current)
        )
        timer.daemon = True
        with self._lock:
            self._cancel_pending()
            self._timer = timer
        timer.start()
        return generation

    def wait(self, timeout: float = None) -> None:
        """Block until the pending debounced request (if any) has finished."""
        timer = self._timer
        if timer is not None:
            timer.join(timeout)

    def clear(self) -> None:
        """Release images held in memory."""
        self.reset()


class SessionService:
    """
    In-memory registry of editing sessions, keyed by session id.
    Holds at most ``max_sessions``; the least recently used one is
    evicted (and its images released) when a new session needs room.
    """

    def __init__(self, stencil_service: StencilService = None, max_sessions: int = None):
        self.stencil_service = stencil_service or StencilService()
        if max_sessions is None:
            max_sessions = int(os.getenv("MAX_SESSIONS", "32"))
        self.max_sessions = max(1, max_sessions)
        self._sessions: OrderedDict[str, StencilSession] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> Optional[StencilSession]:
        if not isinstance(session_id, str):
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
            return session

    def get_or_create(self, session_id: str = None) -> StencilSession:
        """Get existing session or create new one."""
        with self._lock:
            if session_id and session_id in self._sessions:
                self._sessions.move_to_end(session_id)
                return self._sessions[session_id]
            evicted = []
            while len(self._sessions) >= self.max_sessions:
                evicted.append(self._sessions.popitem(last=False)[1])
            session = StencilSession(session_id, stencil_service=self.stencil_service)
            self._sessions[session.session_id] = session
        for old in evicted:
            logger.info(f"Evicting idle session {old.session_id}")
            old.clear()
        return session

    def drop(self, session_id: str) -> bool:
        if not isinstance(session_id, str):
            return False
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.clear()
        return True
