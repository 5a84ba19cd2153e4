import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from dbus_next.aio.message_bus import MessageBus
from dbus_next.errors import DBusError

from modemkick.dbus.constants import ModemManagerDBusConstants
from modemkick.dbus.manager import ModemManagerClient, NameOwnerWatcher
from modemkick.dbus.modem import Modem
from modemkick.watchdog.registry import ModemRegistry

ClientFactory = Callable[[MessageBus], Awaitable[ModemManagerClient]]
WatcherFactory = Callable[[MessageBus, str], Awaitable[NameOwnerWatcher]]


class ServiceSupervisor:
    """Follows ModemManager's presence on the bus and feeds the registry.

    Each time ModemManager appears, the ModemManagerClient is discarded and
    rebuilt before the inventory is read: an object-manager client created
    while the service was away cannot be trusted to report later objects.
    When ModemManager goes away every tracked modem is dropped.
    """

    def __init__(
        self,
        bus: MessageBus,
        registry: ModemRegistry,
        client_factory: ClientFactory | None = None,
        watcher_factory: WatcherFactory | None = None,
    ) -> None:
        """Initialize the supervisor with optional dependency injection.

        Args:
            bus: The connected message bus
            registry: Registry receiving modem add/remove events
            client_factory: Builds a ModemManagerClient
            watcher_factory: Builds the NameOwnerWatcher for ModemManager
        """
        self._logger = logging.getLogger(__name__)

        self._bus = bus
        self._registry = registry
        self._client_factory = client_factory or ModemManagerClient.create
        self._watcher_factory = watcher_factory or NameOwnerWatcher.create

        self._watcher: NameOwnerWatcher | None = None
        self._client: ModemManagerClient | None = None
        self._transition_lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()
        self._stopped = False

    @property
    def client(self) -> ModemManagerClient | None:
        """The current ModemManager client, None while the service is away.
        """
        return self._client

    async def start(self) -> None:
        """Start watching ModemManager and load its modems if it is running.

        Raises:
            DBusError: If the bus daemon itself cannot be watched
        """
        self._watcher = await self._watcher_factory(
            self._bus,
            ModemManagerDBusConstants.SERVICE_NAME,
        )
        self._watcher.subscribe(self._on_name_owner_changed)

        try:
            owner = await self._watcher.get_name_owner()
        except DBusError as e:
            self._logger.warning(
                'Failed to query the ModemManager name owner: %s',
                e,
            )
            owner = None

        async with self._transition_lock:
            if owner:
                self._logger.info('ModemManager is running')
                await self._service_appeared()
            else:
                self._logger.info('ModemManager is not running')

    async def stop(self) -> None:
        """Stop watching and drop every tracked modem.
        """
        self._stopped = True

        if self._watcher is not None:
            self._watcher.unsubscribe(self._on_name_owner_changed)
            self._watcher.close()
            self._watcher = None

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self._discard_client()

    async def wait_idle(self) -> None:
        """Wait until every queued ownership transition has been handled.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_name_owner_changed(
        self,
        old_owner: str | None,
        new_owner: str | None,
    ) -> None:
        if self._stopped:
            return
        self._spawn(self._handle_owner_change(old_owner, new_owner))

    async def _handle_owner_change(
        self,
        old_owner: str | None,
        new_owner: str | None,
    ) -> None:
        async with self._transition_lock:
            if self._stopped:
                return

            if old_owner:
                self._logger.info('ModemManager no longer running')
                self._discard_client()

            if new_owner:
                self._logger.info('ModemManager now running')
                await self._service_appeared()

    async def _service_appeared(self) -> None:
        """Rebuild the client, then register every modem it reports.
        """
        self._discard_client()

        try:
            client = await self._client_factory(self._bus)
        except DBusError as e:
            self._logger.warning(
                'Error: failed to connect to ModemManager: %s',
                e,
            )
            return
        except Exception as e:
            self._logger.error(
                'Unexpected error creating the ModemManager client: %s',
                e,
                exc_info=True,
            )
            return

        if self._stopped:
            client.close()
            return

        client.on_object_added(self._on_object_added)
        client.on_object_removed(self._on_object_removed)
        self._client = client

        try:
            modems = await client.get_modems()
        except DBusError as e:
            self._logger.warning('Failed to enumerate modems: %s', e)
            return

        if self._client is not client:
            return

        for modem in modems:
            self._registry.add(modem)

    def _discard_client(self) -> None:
        """Forget all modems and release the client's subscriptions.
        """
        self._registry.clear_all()
        if self._client is not None:
            self._client.close()
            self._client = None

    def _on_object_added(self, modem: Modem) -> None:
        self._registry.add(modem)

    def _on_object_removed(self, object_path: str) -> None:
        self._registry.remove(object_path)
