"""
Continuous Watch Module

An Observer re-issues a watch on a prefix every time one returns, starting
from the index of the change it just delivered. The service answers a watch
with the change at that index or the next one after it, so no change made
while the handler was running is lost.

The loop runs on its own daemon thread. A watch cannot be interrupted while
it is waiting for the server, so cancel() only takes effect when the
pending watch returns; that last notification is dropped without calling
the handler.
"""

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

from ..errors import EtcdError
from ..protocol.info import KeyInfo

logger = logging.getLogger(__name__)

# handler(value, key, info)
Handler = Callable[[Optional[str], str, KeyInfo], Any]


class ObserverState(Enum):
    """Lifecycle of an Observer. CANCELLED is terminal."""
    RUNNING = "running"
    CANCELLED = "cancelled"


class Observer:
    """
    Background watch loop for one prefix.

    Handlers run on the observer's thread, in increasing index order.

    Usage:
        observer = Observer(client, "/foo", handler).run()
        ...
        observer.cancel().join()

    Attributes:
        client: Object with a watch(prefix, index=...) method returning KeyInfo
        prefix: The key or prefix being watched
        handler: Called as handler(value, key, info) for every change
    """

    def __init__(self, client: Any, prefix: str, handler: Handler, index: int = None):
        """
        Initialize the observer. Nothing runs until run() is called.

        Args:
            client: The client used to issue watches
            prefix: The key or prefix to watch
            handler: Change callback
            index: The change-index to start from (optional)
        """
        self.client = client
        self.prefix = prefix
        self.handler = handler

        self._state = ObserverState.RUNNING
        self._last_index: Optional[int] = index
        self._error: Optional[BaseException] = None
        self._delivered = False
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> ObserverState:
        return self._state

    @property
    def running(self) -> bool:
        """True until cancel() is called or the loop stops on an error."""
        return self._state is ObserverState.RUNNING

    @property
    def last_index(self) -> Optional[int]:
        """Index of the last change handed to the handler."""
        return self._last_index

    @property
    def error(self) -> Optional[BaseException]:
        """The exception that stopped the loop, if any."""
        return self._error

    def run(self) -> "Observer":
        """
        Start the watch loop on a new thread.

        Returns:
            self
        """
        with self._lock:
            if self._thread is not None:
                return self
            self._thread = threading.Thread(
                target=self._loop,
                name=f"etcd-observer:{self.prefix}",
                daemon=True,
            )
            self._thread.start()
        logger.debug(f"Observing {self.prefix} from index {self._last_index}")
        return self

    def cancel(self) -> "Observer":
        """
        Stop delivering changes. Calling it more than once has no further effect.

        Returns:
            self
        """
        if self._state is not ObserverState.CANCELLED:
            self._state = ObserverState.CANCELLED
            logger.debug(f"Observer for {self.prefix} cancelled")
        return self

    def join(self, timeout: float = None) -> "Observer":
        """
        Wait for the watch thread to exit.

        After cancel() this returns once the pending watch has been
        answered. Returns immediately if the observer was never started.

        Args:
            timeout: Maximum seconds to wait (None waits forever)

        Returns:
            self
        """
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return self

    def _loop(self) -> None:
        next_index = self._last_index
        try:
            while self.running:
                info = self.client.watch(self.prefix, index=next_index)
                if not self.running:
                    break
                if self._is_duplicate(info):
                    logger.debug(f"Skipping already delivered index {info.index}")
                    next_index = self._last_index + 1
                    continue
                self._last_index = next_index = info.index
                self._delivered = True
                self.handler(info.value, info.key, info)
        except EtcdError as e:
            self._error = e
            logger.error(f"Observer for {self.prefix} stopped: {e}")
            self.cancel()
        except Exception as e:
            self._error = e
            logger.exception(f"Handler for {self.prefix} raised, observer stopped")
            self.cancel()

    def _is_duplicate(self, info: KeyInfo) -> bool:
        # only indices this observer handed out itself count as seen
        if not self._delivered or info.index is None or self._last_index is None:
            return False
        return info.index <= self._last_index

    def __repr__(self) -> str:
        return (f"Observer(prefix={self.prefix!r}, state={self._state.value}, "
                f"last_index={self._last_index})")
