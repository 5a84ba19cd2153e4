import logging
from collections.abc import Callable
from typing import Any, Self

from dbus_next.aio.message_bus import MessageBus
from dbus_next.aio.proxy_object import ProxyInterface
from dbus_next.errors import DBusError

from modemkick.dbus.constants import DBusConstants, ModemManagerDBusConstants
from modemkick.dbus.introspection import OBJECT_MANAGER_XML
from modemkick.dbus.modem import Modem
from modemkick.dbus.types import unwrap_interfaces

NameOwnerListener = Callable[[str | None, str | None], None]
ObjectAddedListener = Callable[[Modem], None]
ObjectRemovedListener = Callable[[str], None]


class NameOwnerWatcher:
    """Tracks who owns a well-known bus name.

    Listeners receive (old_owner, new_owner), with None standing in for
    "no owner".
    """

    def __init__(self, bus: MessageBus, name: str):
        """Initialize the watcher.

        Args:
            bus: The connected message bus
            name: The well-known bus name to watch
        """
        self._logger = logging.getLogger(__name__)

        self._bus = bus
        self._name = name
        self._dbus_interface: ProxyInterface | None = None
        self._listeners: list[NameOwnerListener] = []

    @classmethod
    async def create(cls, bus: MessageBus, name: str) -> Self:
        """Create a watcher subscribed to NameOwnerChanged.

        Raises:
            DBusError: If the bus daemon cannot be introspected
        """
        watcher = cls(bus, name)
        await watcher._ensure_dbus_interface()
        return watcher

    async def _ensure_dbus_interface(self) -> ProxyInterface:
        """Ensure the bus daemon proxy is initialized and subscribed.
        """
        if self._dbus_interface is not None:
            return self._dbus_interface

        try:
            introspection = await self._bus.introspect(
                DBusConstants.SERVICE_NAME,
                DBusConstants.OBJECT_PATH,
            )
        except DBusError as e:
            self._logger.error('Failed to introspect the bus daemon: %s', e)
            raise

        proxy_object = self._bus.get_proxy_object(
            DBusConstants.SERVICE_NAME,
            DBusConstants.OBJECT_PATH,
            introspection,
        )
        self._dbus_interface = proxy_object.get_interface(
            DBusConstants.INTERFACE
        )
        self._dbus_interface.on_name_owner_changed(  # type: ignore
            self._on_name_owner_changed
        )
        return self._dbus_interface

    def subscribe(self, listener: NameOwnerListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: NameOwnerListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def get_name_owner(self) -> str | None:
        """Get the unique name currently owning the watched name.

        Returns:
            The owner's unique bus name, or None if nobody owns it

        Raises:
            DBusError: If the D-Bus call fails for another reason
        """
        dbus_interface = await self._ensure_dbus_interface()

        try:
            return await dbus_interface.call_get_name_owner(  # type: ignore
                self._name
            )
        except DBusError as e:
            if e.type == DBusConstants.NAME_HAS_NO_OWNER:
                return None
            raise

    def _on_name_owner_changed(
        self,
        name: str,
        old_owner: str,
        new_owner: str,
    ) -> None:
        if name != self._name:
            return

        self._logger.debug(
            '%s owner changed: %r -> %r',
            name,
            old_owner,
            new_owner,
        )
        for listener in list(self._listeners):
            listener(old_owner or None, new_owner or None)

    def close(self) -> None:
        """Release the NameOwnerChanged subscription.
        """
        self._listeners.clear()
        if self._dbus_interface is not None:
            self._dbus_interface.off_name_owner_changed(  # type: ignore
                self._on_name_owner_changed
            )
            self._dbus_interface = None


class ModemManagerClient:
    """Client for ModemManager's object manager.

    Serves as a factory for Modem instances and reports modem objects
    appearing and disappearing. A client is meant to be discarded and
    replaced whenever ModemManager (re)appears on the bus.
    """

    def __init__(self, bus: MessageBus):
        """Initialize the client.

        Args:
            bus: The connected message bus
        """
        self._logger = logging.getLogger(__name__)

        self._bus = bus
        self._object_manager: ProxyInterface | None = None
        self._objects: dict[str, Modem] = {}
        self._added_listeners: list[ObjectAddedListener] = []
        self._removed_listeners: list[ObjectRemovedListener] = []
        self._closed = False

    @classmethod
    async def create(cls, bus: MessageBus) -> Self:
        """Create a client subscribed to object lifecycle signals.

        Raises:
            DBusError: If the proxy cannot be set up
        """
        client = cls(bus)
        client._subscribe()
        return client

    def _subscribe(self) -> None:
        proxy_object = self._bus.get_proxy_object(
            ModemManagerDBusConstants.SERVICE_NAME,
            ModemManagerDBusConstants.OBJECT_PATH,
            OBJECT_MANAGER_XML,
        )
        self._object_manager = proxy_object.get_interface(
            DBusConstants.OBJECT_MANAGER_INTERFACE
        )
        self._object_manager.on_interfaces_added(  # type: ignore
            self._on_interfaces_added
        )
        self._object_manager.on_interfaces_removed(  # type: ignore
            self._on_interfaces_removed
        )
        self._logger.info('Watching D-Bus for ModemManager objects...')

    def on_object_added(self, listener: ObjectAddedListener) -> None:
        self._added_listeners.append(listener)

    def on_object_removed(self, listener: ObjectRemovedListener) -> None:
        self._removed_listeners.append(listener)

    async def get_modems(self) -> list[Modem]:
        """Fetch the complete set of modem objects.

        Returns:
            Modem instances for every object ModemManager exports

        Raises:
            DBusError: If the D-Bus call fails
        """
        if self._object_manager is None:
            raise RuntimeError('ModemManager client is not subscribed')

        try:
            managed_objects = await self._object_manager\
                .call_get_managed_objects()  # type: ignore
        except DBusError as e:
            self._logger.warning(
                'Failed to list ModemManager objects: %s',
                e,
            )
            raise

        modems = []
        for object_path, interfaces in managed_objects.items():
            modems.append(self._track(object_path, interfaces))

        return modems

    def _track(self, object_path: str, interfaces: dict[str, Any]) -> Modem:
        """Create or update the Modem for an object path.
        """
        unwrapped = unwrap_interfaces(interfaces)
        modem = self._objects.get(object_path)
        if modem is None:
            modem = Modem(self._bus, object_path, unwrapped)
            self._objects[object_path] = modem
        else:
            modem.update_interfaces(unwrapped)
        return modem

    def _on_interfaces_added(
        self,
        object_path: str,
        interfaces: dict[str, Any],
    ) -> None:
        if self._closed:
            return

        known = object_path in self._objects
        modem = self._track(object_path, interfaces)
        if known:
            return

        for listener in list(self._added_listeners):
            listener(modem)

    def _on_interfaces_removed(
        self,
        object_path: str,
        interfaces: list[str],
    ) -> None:
        if self._closed:
            return

        modem = self._objects.get(object_path)
        if modem is None or not modem.remove_interfaces(interfaces):
            return

        del self._objects[object_path]
        for listener in list(self._removed_listeners):
            listener(object_path)
        modem.close()

    def close(self) -> None:
        """Release all signal subscriptions and forget known objects.
        """
        if self._closed:
            return

        self._closed = True
        self._added_listeners.clear()
        self._removed_listeners.clear()

        if self._object_manager is not None:
            self._object_manager.off_interfaces_added(  # type: ignore
                self._on_interfaces_added
            )
            self._object_manager.off_interfaces_removed(  # type: ignore
                self._on_interfaces_removed
            )
            self._object_manager = None

        for modem in self._objects.values():
            modem.close()
        self._objects.clear()
