import asyncio
import logging

from dbus_next.aio.message_bus import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import DBusError

from modemkick.dbus.constants import ConnectionConfig


class DBusConnectionManager:
    """Holds the watchdog's single bus connection.

    The bus is opened once at startup. If it cannot be reached within the
    configured number of attempts the watchdog cannot do anything useful,
    so the failure surfaces as ConnectionError.
    """

    def __init__(
        self,
        bus_type: BusType = BusType.SYSTEM,
        max_retries: int = ConnectionConfig.DEFAULT_MAX_RETRIES,
        initial_backoff: float = ConnectionConfig.DEFAULT_INITIAL_BACKOFF,
    ):
        """Initialize the manager without connecting.

        Args:
            bus_type: Which bus to open, the system bus by default
            max_retries: Connection attempts before giving up
            initial_backoff: Seconds to wait after the first failed attempt
        """
        self._logger = logging.getLogger(__name__)

        self._bus_type = bus_type
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff
        self._bus: MessageBus | None = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self._bus is not None and self._bus.connected

    async def connect(self) -> MessageBus:
        """Open the bus, or return the already open one.

        Raises:
            ConnectionError: If every attempt failed
        """
        async with self._lock:
            if self.connected:
                return self._bus  # type: ignore

            delay = self._initial_backoff
            for attempt in range(1, self._max_retries + 1):
                try:
                    self._bus = await MessageBus(
                        bus_type=self._bus_type,
                    ).connect()
                except (DBusError, OSError) as e:
                    self._logger.warning(
                        'D-Bus connection attempt %d/%d failed: %s',
                        attempt,
                        self._max_retries,
                        e,
                    )
                else:
                    self._logger.debug(
                        'Connected to the %s bus',
                        self._bus_type.name.lower(),
                    )
                    return self._bus

                if attempt < self._max_retries:
                    await asyncio.sleep(delay)
                    delay *= ConnectionConfig.BACKOFF_MULTIPLIER

        self._logger.critical(
            'Error: cannot reach D-Bus after %d attempts',
            self._max_retries,
        )
        raise ConnectionError(
            f'cannot reach D-Bus after {self._max_retries} attempts'
        )

    async def disconnect(self) -> None:
        async with self._lock:
            if self._bus is None:
                return
            self._bus.disconnect()
            self._bus = None

    def get_bus(self) -> MessageBus:
        """The open bus.

        Raises:
            ConnectionError: If connect() has not succeeded
        """
        if self._bus is None:
            raise ConnectionError('not connected to D-Bus')
        return self._bus
