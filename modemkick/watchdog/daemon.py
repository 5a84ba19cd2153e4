import asyncio
import logging
import signal
import time

from modemkick.dbus.connection import DBusConnectionManager
from modemkick.models.settings import KickSettings
from modemkick.watchdog.idle_detector import IdleDetector
from modemkick.watchdog.registration import Clock
from modemkick.watchdog.registry import ModemRegistry
from modemkick.watchdog.supervisor import ServiceSupervisor


class KickDaemon:
    """Root object of the modem watchdog.

    Owns the bus connection, the modem registry, the idle detector and the
    ModemManager supervisor. Components are torn down in the reverse order
    of their construction.
    """

    def __init__(
        self,
        settings: KickSettings,
        connection: DBusConnectionManager | None = None,
        clock: Clock = time.monotonic,
        install_signal_handlers: bool = True,
    ) -> None:
        """Initialize the daemon.

        Args:
            settings: Timing configuration
            connection: D-Bus connection manager, a system bus one if omitted
            clock: Monotonic clock shared by registry and detector
            install_signal_handlers: Shut down on SIGTERM and SIGINT
        """
        self._logger = logging.getLogger(__name__)

        self._settings = settings
        self._connection = connection or DBusConnectionManager()
        self._clock = clock
        self._install_signal_handlers = install_signal_handlers

        self._registry: ModemRegistry | None = None
        self._detector: IdleDetector | None = None
        self._supervisor: ServiceSupervisor | None = None
        self._shutdown_event = asyncio.Event()
        self._failure: BaseException | None = None

    @property
    def registry(self) -> ModemRegistry | None:
        return self._registry

    @property
    def supervisor(self) -> ServiceSupervisor | None:
        return self._supervisor

    async def run(self) -> None:
        """Run until a shutdown is requested.

        Raises:
            ConnectionError: If the system bus cannot be reached
            RuntimeError: If the idle detector died unexpectedly
        """
        bus = await self._connection.connect()

        try:
            self._registry = ModemRegistry(self._settings, self._clock)
            self._detector = IdleDetector(
                self._registry,
                self._settings,
                self._clock,
            )
            self._supervisor = ServiceSupervisor(bus, self._registry)

            if self._install_signal_handlers:
                self._setup_signal_handlers()

            self._detector.start().add_done_callback(self._on_detector_done)
            await self._supervisor.start()

            await self._shutdown_event.wait()
        finally:
            await self._teardown()

        if self._failure is not None:
            raise RuntimeError('Idle detector stopped') from self._failure

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the daemon.
        """
        self._logger.info('Shutdown requested')
        self._shutdown_event.set()

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def signal_handler(sig: signal.Signals) -> None:
            self._logger.info('Received %s; quitting...', sig.name)
            self.request_shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler, sig)

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    def _on_detector_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            self._logger.critical(
                'Idle detector stopped: %s',
                error,
                exc_info=error,
            )
            self._failure = error
            self.request_shutdown()

    async def _teardown(self) -> None:
        if self._install_signal_handlers:
            self._remove_signal_handlers()

        if self._supervisor is not None:
            await self._supervisor.stop()
        if self._detector is not None:
            await self._detector.stop()
        if self._registry is not None:
            self._registry.clear_all()

        await self._connection.disconnect()
