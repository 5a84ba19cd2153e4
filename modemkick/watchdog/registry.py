import functools
import logging
import time
from collections.abc import Callable, Iterator

from modemkick.dbus.constants import RegistrationState
from modemkick.dbus.modem import Modem, RegistrationListener
from modemkick.models.settings import KickSettings
from modemkick.watchdog.kick import KickOperation
from modemkick.watchdog.registration import Clock, RegistrationMonitor


def skip_reason(modem: Modem) -> str | None:
    """Why a modem cannot be monitored, or None if it can.
    """
    if not modem.has_modem_interface:
        return 'no modem interface'
    if not modem.primary_port:
        return 'no primary port'
    if not modem.has_3gpp:
        return 'not a 3GPP modem'
    return None


class ModemContext:
    """Monitoring state of one tracked modem.

    Owned by ModemRegistry. Holds the registration monitor, the
    registration subscription and at most one active KickOperation.
    """

    def __init__(
        self,
        modem: Modem,
        settings: KickSettings,
        clock: Clock = time.monotonic,
    ):
        self._modem = modem
        self._settings = settings
        self._monitor = RegistrationMonitor(modem.object_path, clock)
        self._listener: RegistrationListener | None = None
        self._kick: KickOperation | None = None

    @property
    def path(self) -> str:
        return self._modem.object_path

    @property
    def modem(self) -> Modem:
        return self._modem

    @property
    def monitor(self) -> RegistrationMonitor:
        return self._monitor

    @property
    def stuck_since(self) -> float | None:
        return self._monitor.stuck_since

    @property
    def kick(self) -> KickOperation | None:
        """The active recovery operation, if any.
        """
        return self._kick

    def subscribe(self, listener: RegistrationListener) -> None:
        """Attach the registration-changed listener.
        """
        self._listener = listener
        self._modem.on_registration_changed(listener)

    def start_kick(self) -> KickOperation:
        """Replace any active kick with a fresh one at its first step.
        """
        self.cancel_kick()
        self._kick = KickOperation(
            self._modem,
            self._settings,
            on_finished=self._on_kick_finished,
        )
        self._kick.start()
        return self._kick

    def cancel_kick(self) -> None:
        if self._kick is not None:
            self._kick.cancel()
            self._kick = None

    def _on_kick_finished(self, operation: KickOperation) -> None:
        if self._kick is operation:
            self._kick = None

    def close(self) -> None:
        """Release the subscription and cancel any active kick.
        """
        if self._listener is not None:
            self._modem.off_registration_changed(self._listener)
            self._listener = None
        self.cancel_kick()


class ModemRegistry:
    """Maps modem object paths to their monitoring state.
    """

    def __init__(
        self,
        settings: KickSettings,
        clock: Clock = time.monotonic,
    ):
        """Initialize an empty registry.

        Args:
            settings: Settings handed to every kick operation
            clock: Monotonic clock used by the registration monitors
        """
        self._logger = logging.getLogger(__name__)

        self._settings = settings
        self._clock = clock
        self._modems: dict[str, ModemContext] = {}

    def add(self, modem: Modem) -> ModemContext | None:
        """Start monitoring a modem.

        Modems without the Modem interface, a primary port or 3GPP
        registration are logged and ignored.

        Returns:
            The new context, or None if the modem was not added
        """
        path = modem.object_path

        existing = self._modems.get(path)
        if existing is not None:
            if existing.modem is modem:
                self._logger.debug('%s: already tracked', path)
                return existing
            self.remove(path)

        reason = skip_reason(modem)
        if reason is not None:
            if modem.has_modem_interface and modem.primary_port:
                self._logger.info('Ignoring non-3GPP modem %s', path)
            else:
                self._logger.warning('Error: modem %s had %s', path, reason)
            return None

        self._logger.info('%s: added', path)
        context = ModemContext(modem, self._settings, self._clock)
        context.subscribe(
            functools.partial(self._on_registration_changed, path)
        )
        context.monitor.observe(modem.registration_state)
        self._modems[path] = context
        return context

    def _on_registration_changed(
        self,
        path: str,
        state: RegistrationState,
    ) -> None:
        context = self._modems.get(path)
        if context is None:
            return
        context.monitor.observe(state)

    def remove(self, path: str) -> bool:
        """Stop monitoring a modem.

        Returns:
            True if the modem was tracked
        """
        context = self._modems.get(path)
        if context is None:
            return False

        self._logger.info('%s: removed', path)
        context.close()
        del self._modems[path]
        return True

    def clear_all(self) -> None:
        """Stop monitoring every modem.
        """
        if not self._modems:
            return

        self._logger.info('clearing modems')
        for path in list(self._modems):
            self.remove(path)

    def for_each(self, fn: Callable[[ModemContext], None]) -> None:
        """Call fn for every tracked modem.

        Iterates over a snapshot, so fn may add or remove modems. Modems
        removed before their turn are skipped.
        """
        for context in list(self._modems.values()):
            if self._modems.get(context.path) is context:
                fn(context)

    def get(self, path: str) -> ModemContext | None:
        return self._modems.get(path)

    def paths(self) -> list[str]:
        return list(self._modems)

    def __contains__(self, path: object) -> bool:
        return path in self._modems

    def __len__(self) -> int:
        return len(self._modems)

    def __iter__(self) -> Iterator[ModemContext]:
        return iter(list(self._modems.values()))
