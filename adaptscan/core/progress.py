"""
Cooperative progress requests.

A ProgressTrigger is set from outside the scan (a signal handler, a UI thread).
Each scan loop polls its own ProgressListener once per iteration, so a single
request produces one snapshot from every shard that is running. A request only
asks for a snapshot; it never cancels anything.
"""

import itertools
import logging
import signal

from adaptscan.common.logger import setup_logger

setup_logger()
logger = logging.getLogger(__name__)


class ProgressTrigger:
    def __init__(self):
        self._requests = itertools.count(1)
        self._generation = 0

    def request(self) -> None:
        # no lock, this runs inside signal handlers
        self._generation = next(self._requests)

    @property
    def generation(self) -> int:
        """Number of requests made so far."""
        return self._generation

    def listener(self) -> "ProgressListener":
        """A listener that sees requests made from now on."""
        return ProgressListener(self)


class ProgressListener:
    """Per-shard view of a ProgressTrigger."""

    def __init__(self, trigger: ProgressTrigger):
        self._trigger = trigger
        self._seen = trigger.generation

    def poll(self) -> bool:
        """Return True once for any requests made since the last poll."""
        current = self._trigger.generation
        if current == self._seen:
            return False
        self._seen = current
        return True


def install_signal_trigger(trigger: ProgressTrigger, signame: str = "SIGUSR1") -> bool:
    """
    Request progress snapshots on a POSIX signal.

    Args:
        trigger: The trigger to set when the signal arrives
        signame: Signal name, ignored on platforms that lack it

    Returns:
        bool: True if the handler was installed
    """
    signum = getattr(signal, signame, None)
    if signum is None:
        logger.debug(f"{signame} is not available on this platform")
        return False

    signal.signal(signum, lambda _signum, _frame: trigger.request())
    logger.debug(f"Progress snapshots available via {signame}")
    return True
