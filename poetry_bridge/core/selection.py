"""Which backend answers requests, and who gets told when that changes."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import TYPE_CHECKING, Callable

from poetry_bridge.core.errors import ValidationFailedError
from poetry_bridge.core.preferences import PREFERRED_BACKEND_KEY

if TYPE_CHECKING:
    from poetry_bridge.core.preferences import PreferenceStore
    from poetry_bridge.core.settings import Settings

logger = logging.getLogger(__name__)


class BackendId(str, Enum):
    """Backend identifiers, also the values persisted as the user's choice."""

    REMOTE_API = "remote_api"
    DIRECT_STORE = "direct_store"

    @classmethod
    def parse(cls, value: str | None) -> "BackendId | None":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


Observer = Callable[["BackendId", "BackendId"], None]


class BackendSelection:
    """The active backend, changed only through :meth:`set`.

    Persisting the choice and notifying observers are side effects of the
    setter; reading ``current`` never writes anything. ``generation`` goes up
    on every switch so callers can tell whether a response they awaited was
    requested under the selection that is active now.
    """

    def __init__(
        self,
        initial: BackendId = BackendId.REMOTE_API,
        *,
        direct_store_ready: bool = False,
        preferences: PreferenceStore | None = None,
        preference_key: str | None = None,
    ) -> None:
        if initial is BackendId.DIRECT_STORE and not direct_store_ready:
            initial = BackendId.REMOTE_API
        self._current = initial
        self._direct_store_ready = direct_store_ready
        self._preferences = preferences
        self._preference_key = preference_key or PREFERRED_BACKEND_KEY
        self._observers: list[Observer] = []
        self._generation = 0
        self._lock = threading.Lock()

    @classmethod
    def load(cls, settings: Settings, preferences: PreferenceStore | None = None) -> "BackendSelection":
        """Build the selection at startup: stored preference first, then the configured default."""
        ready = settings.direct_store_ready
        stored = None
        if preferences is not None:
            stored = BackendId.parse(preferences.get(PREFERRED_BACKEND_KEY))
        initial = stored or BackendId.parse(settings.default_backend) or BackendId.REMOTE_API
        if initial is BackendId.DIRECT_STORE and not ready:
            logger.info("Direct store not configured, starting on remote_api")
            initial = BackendId.REMOTE_API
        return cls(initial, direct_store_ready=ready, preferences=preferences)

    @property
    def current(self) -> BackendId:
        return self._current

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def direct_store_ready(self) -> bool:
        return self._direct_store_ready

    def is_selectable(self, backend: BackendId) -> bool:
        return backend is BackendId.REMOTE_API or self._direct_store_ready

    def set(self, backend: BackendId | str) -> BackendId:
        """Switch backends, persist the choice and notify observers."""
        target = backend if isinstance(backend, BackendId) else BackendId.parse(backend)
        if target is None:
            raise ValidationFailedError(f"Unknown backend {backend!r}", backend=self._current.value)
        if not self.is_selectable(target):
            raise ValidationFailedError(
                "Direct store is not configured yet", backend=BackendId.DIRECT_STORE.value
            )

        with self._lock:
            previous = self._current
            self._current = target
            self._generation += 1
            observers = list(self._observers)

        if self._preferences is not None:
            self._preferences.set(self._preference_key, target.value)

        logger.info(f"Backend selection: {previous.value} -> {target.value}")
        for observer in observers:
            observer(previous, target)
        return target

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe
