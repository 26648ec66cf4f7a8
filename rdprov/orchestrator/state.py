"""Orchestration state management - singleton pattern"""

import logging
import threading
from typing import Callable, Optional

from rdprov.common.types import IDENTITY_ERROR, IDENTITY_PENDING

logger = logging.getLogger(__name__)


class OrchestrationState:
    """
    Process-wide orchestration state.

    The `initialized` flag starts false at process start and flips to true
    once static configuration has been applied. It is never reset except by
    a process restart, and it is only reachable through
    `initialization_run()`, which checks and sets it under a lock so that
    exactly one thread performs initialization.
    """

    _instance: Optional["OrchestrationState"] = None
    _instance_lock = threading.Lock()

    def __new__(cls) -> "OrchestrationState":
        """Ensure only one instance exists (singleton pattern)"""
        with cls._instance_lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._initialized_state = False
                cls._instance = instance
        return cls._instance

    def __init__(self) -> None:
        """Initialize state variables (only once)"""
        if self._initialized_state:
            return

        self._lock: threading.Lock = threading.Lock()
        self._initialized: bool = False

        # Last assigned identity seen, to notice re-registration
        self._identity_last: Optional[str] = None

        self._initialized_state = True

    def isInitialized(self) -> bool:
        with self._lock:
            return self._initialized

    def initialization_run(self, initializer: Callable[[], bool]) -> bool:
        """
        Run `initializer` unless initialization already happened.

        The initializer runs while the lock is held, so late arrivals wait
        and then observe the initialized state. The flag is set only when the
        initializer reports success; a failed attempt may be retried.

        Args:
            initializer: Callable returning True on success

        Returns:
            True if this call performed initialization successfully
        """
        with self._lock:
            if self._initialized:
                logger.debug("Static configuration already initialized")
                return False
            if initializer():
                self._initialized = True
                return True
            return False

    def identity_observe(self, identity: str) -> None:
        """Record an identity read, warning if an assigned identity changed"""
        if identity in (IDENTITY_PENDING, IDENTITY_ERROR) or not identity:
            return
        with self._lock:
            if self._identity_last is not None and self._identity_last != identity:
                logger.warning(
                    "Remote identity changed from %s to %s (backend re-registration)",
                    self._identity_last,
                    identity,
                )
            self._identity_last = identity

    @classmethod
    def instance_get(cls) -> "OrchestrationState":
        """Get the singleton instance"""
        return cls()

    @classmethod
    def instance_reset(cls) -> None:
        """Drop the singleton so the next access starts fresh; for tests only"""
        with cls._instance_lock:
            cls._instance = None
