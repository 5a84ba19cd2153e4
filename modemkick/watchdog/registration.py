import logging
import time
from collections.abc import Callable

from modemkick.dbus.constants import RegistrationState

Clock = Callable[[], float]

# Not attached to a network and not trying to attach
STUCK_STATES = frozenset({RegistrationState.IDLE, RegistrationState.DENIED})


def is_stuck_state(state: RegistrationState) -> bool:
    """Whether a registration state counts towards a modem being stuck.
    """
    return state in STUCK_STATES


class RegistrationMonitor:
    """Tracks since when a modem has been continuously idle or denied.

    stuck_since is a monotonic timestamp while the last observed state is
    idle/denied and None otherwise. Repeated idle/denied observations keep
    the original onset.
    """

    def __init__(self, object_path: str, clock: Clock = time.monotonic):
        """Initialize the monitor.

        Args:
            object_path: Modem object path, used in log messages
            clock: Monotonic clock returning seconds
        """
        self._logger = logging.getLogger(__name__)

        self._object_path = object_path
        self._clock = clock
        self._state: RegistrationState | None = None
        self._stuck_since: float | None = None

    @property
    def state(self) -> RegistrationState | None:
        """Last observed registration state, None before the first one.
        """
        return self._state

    @property
    def stuck_since(self) -> float | None:
        return self._stuck_since

    def observe(self, state: RegistrationState | int) -> None:
        """Record a registration state reported by the modem.
        """
        state = RegistrationState.parse(state)
        self._state = state
        self._logger.info(
            '%s: registration changed to %s',
            self._object_path,
            state.label,
        )

        if is_stuck_state(state):
            if self._stuck_since is None:
                self._stuck_since = self._clock()
                self._logger.info(
                    '%s: save idle/denied timestamp %.3f',
                    self._object_path,
                    self._stuck_since,
                )
            return

        if self._stuck_since is not None:
            self._logger.info(
                '%s: no longer idle/denied; clearing timestamp',
                self._object_path,
            )
        self._stuck_since = None

    def stuck_for(self, now: float) -> float | None:
        """Seconds spent idle/denied as of now, None if not stuck.
        """
        if self._stuck_since is None:
            return None
        return now - self._stuck_since
