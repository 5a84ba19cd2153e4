import logging
from collections.abc import Callable
from typing import Any

from dbus_next.aio.message_bus import MessageBus
from dbus_next.aio.proxy_object import ProxyInterface, ProxyObject
from dbus_next.errors import DBusError

from modemkick.dbus.constants import (
    DBusConstants,
    ModemManagerDBusConstants,
    ModemPropertyNames,
    PowerState,
    RegistrationState,
)
from modemkick.dbus.introspection import MODEM_XML
from modemkick.dbus.types import InterfaceProperties, unwrap_properties

RegistrationListener = Callable[[RegistrationState], None]


class Modem:
    """Represents a modem object exported by ModemManager.

    Holds the modem's interface properties as last reported by the service
    (from the inventory, InterfacesAdded and PropertiesChanged) and provides
    the control calls used to kick the modem.
    """

    def __init__(
        self,
        bus: MessageBus,
        object_path: str,
        interfaces: InterfaceProperties,
    ):
        """Initialize a Modem instance.

        Args:
            bus: The connected message bus
            object_path: The D-Bus object path for this modem
            interfaces: Unwrapped properties keyed by interface name
        """
        self._logger = logging.getLogger(__name__)

        self._bus = bus
        self._object_path = object_path
        self._interfaces: InterfaceProperties = {
            name: dict(properties) for name, properties in interfaces.items()
        }
        self._proxy_object: ProxyObject | None = None
        self._properties_interface: ProxyInterface | None = None
        self._registration_listeners: list[RegistrationListener] = []

    @property
    def object_path(self) -> str:
        """Get the D-Bus object path for this modem.
        """
        return self._object_path

    @property
    def interface_names(self) -> frozenset[str]:
        return frozenset(self._interfaces)

    @property
    def has_modem_interface(self) -> bool:
        """Whether the basic Modem control interface is exported.
        """
        return ModemManagerDBusConstants.MODEM_INTERFACE in self._interfaces

    @property
    def has_3gpp(self) -> bool:
        """Whether the modem reports 3GPP registration.
        """
        return ModemManagerDBusConstants.MODEM_3GPP_INTERFACE \
            in self._interfaces

    @property
    def primary_port(self) -> str | None:
        """Name of the primary control port, None if none is reported.
        """
        port = self._get_cached(
            ModemManagerDBusConstants.MODEM_INTERFACE,
            ModemPropertyNames.PRIMARY_PORT,
        )
        return port or None

    @property
    def registration_state(self) -> RegistrationState:
        """Current 3GPP registration state.
        """
        value = self._get_cached(
            ModemManagerDBusConstants.MODEM_3GPP_INTERFACE,
            ModemPropertyNames.REGISTRATION_STATE,
        )
        if value is None:
            return RegistrationState.UNKNOWN
        return RegistrationState.parse(value)

    @property
    def model(self) -> str:
        return self._get_cached(
            ModemManagerDBusConstants.MODEM_INTERFACE,
            ModemPropertyNames.MODEL,
        ) or ''

    @property
    def operator_name(self) -> str:
        return self._get_cached(
            ModemManagerDBusConstants.MODEM_3GPP_INTERFACE,
            ModemPropertyNames.OPERATOR_NAME,
        ) or ''

    def _get_cached(self, interface: str, property_name: str) -> Any:
        return self._interfaces.get(interface, {}).get(property_name)

    def update_interfaces(self, interfaces: InterfaceProperties) -> None:
        """Merge interfaces announced by InterfacesAdded.
        """
        for name, properties in interfaces.items():
            self._interfaces.setdefault(name, {}).update(properties)

    def remove_interfaces(self, names: list[str]) -> bool:
        """Drop interfaces announced by InterfacesRemoved.

        Returns:
            True if the object has no interfaces left
        """
        for name in names:
            self._interfaces.pop(name, None)
        return not self._interfaces

    def _ensure_proxy(self) -> ProxyObject:
        """Ensure the D-Bus proxy object is initialized.
        """
        if self._proxy_object is None:
            self._proxy_object = self._bus.get_proxy_object(
                ModemManagerDBusConstants.SERVICE_NAME,
                self._object_path,
                MODEM_XML,
            )
        return self._proxy_object

    def on_registration_changed(self, listener: RegistrationListener) -> None:
        """Subscribe to registration state changes.

        The first subscriber starts watching PropertiesChanged.
        """
        if not self._registration_listeners:
            self._watch_properties()
        self._registration_listeners.append(listener)

    def off_registration_changed(self, listener: RegistrationListener) -> None:
        """Release a subscription made with on_registration_changed().
        """
        if listener not in self._registration_listeners:
            return

        self._registration_listeners.remove(listener)
        if not self._registration_listeners:
            self._unwatch_properties()

    def _watch_properties(self) -> None:
        proxy_object = self._ensure_proxy()
        self._properties_interface = proxy_object.get_interface(
            DBusConstants.PROPERTIES_INTERFACE
        )
        self._properties_interface.on_properties_changed(  # type: ignore
            self._on_properties_changed
        )

    def _unwatch_properties(self) -> None:
        if self._properties_interface is None:
            return

        self._properties_interface.off_properties_changed(  # type: ignore
            self._on_properties_changed
        )
        self._properties_interface = None

    def _on_properties_changed(
        self,
        interface_name: str,
        changed_properties: dict[str, Any],
        invalidated_properties: list[str],
    ) -> None:
        """Update the cache and notify registration listeners.
        """
        properties = self._interfaces.get(interface_name)
        if properties is None:
            return

        properties.update(unwrap_properties(changed_properties))
        for name in invalidated_properties:
            properties.pop(name, None)

        if interface_name != ModemManagerDBusConstants.MODEM_3GPP_INTERFACE:
            return
        if ModemPropertyNames.REGISTRATION_STATE not in changed_properties:
            return

        state = self.registration_state
        for listener in list(self._registration_listeners):
            listener(state)

    def close(self) -> None:
        """Drop all subscriptions held by this object.
        """
        self._registration_listeners.clear()
        self._unwatch_properties()

    async def disable(self) -> None:
        """Disable the modem.

        Raises:
            DBusError: If the D-Bus call fails
        """
        await self._call_enable(False)

    async def enable(self) -> None:
        """Enable the modem.

        Raises:
            DBusError: If the D-Bus call fails
        """
        await self._call_enable(True)

    async def set_power_state_low(self) -> None:
        """Put the modem into low-power mode.

        Raises:
            DBusError: If the D-Bus call fails
        """
        modem_interface = self._get_modem_interface()

        try:
            await modem_interface.call_set_power_state(  # type: ignore
                int(PowerState.LOW)
            )
        except DBusError as e:
            self._logger.debug(
                'SetPowerState(low) failed for modem %s: %s',
                self._object_path,
                e,
            )
            raise

    async def _call_enable(self, enable: bool) -> None:
        modem_interface = self._get_modem_interface()

        try:
            await modem_interface.call_enable(enable)  # type: ignore
        except DBusError as e:
            self._logger.debug(
                'Enable(%s) failed for modem %s: %s',
                enable,
                self._object_path,
                e,
            )
            raise

    def _get_modem_interface(self) -> ProxyInterface:
        return self._ensure_proxy().get_interface(
            ModemManagerDBusConstants.MODEM_INTERFACE
        )

    def __repr__(self) -> str:
        return f'Modem({self._object_path!r})'
