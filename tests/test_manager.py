"""Tests for modemkick/dbus/manager.py."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from dbus_next import Variant
from dbus_next.errors import DBusError

from modemkick.dbus.constants import DBusConstants, ModemManagerDBusConstants
from modemkick.dbus.manager import ModemManagerClient, NameOwnerWatcher

from conftest import FAILED_ERROR

MM_NAME = ModemManagerDBusConstants.SERVICE_NAME
MODEM_IFACE = ModemManagerDBusConstants.MODEM_INTERFACE
MODEM_3GPP_IFACE = ModemManagerDBusConstants.MODEM_3GPP_INTERFACE
MODEM_0 = '/org/freedesktop/ModemManager1/Modem/0'
MODEM_1 = '/org/freedesktop/ModemManager1/Modem/1'


def modem_interfaces(port='cdc-wdm0', state=1):
    return {
        MODEM_IFACE: {'PrimaryPort': Variant('s', port)},
        MODEM_3GPP_IFACE: {'RegistrationState': Variant('u', state)},
    }


@pytest.fixture
def bus():
    bus = MagicMock()
    bus.introspect = AsyncMock(return_value=MagicMock())
    return bus


@pytest.fixture
def proxy_interface(bus):
    interface = bus.get_proxy_object.return_value.get_interface.return_value
    interface.call_get_managed_objects = AsyncMock(return_value={})
    interface.call_get_name_owner = AsyncMock(return_value=':1.20')
    return interface


class TestNameOwnerWatcher:
    async def test_subscribes_on_create(self, bus, proxy_interface):
        await NameOwnerWatcher.create(bus, MM_NAME)

        bus.introspect.assert_awaited_once_with(
            DBusConstants.SERVICE_NAME,
            DBusConstants.OBJECT_PATH,
        )
        proxy_interface.on_name_owner_changed.assert_called_once()

    async def test_get_name_owner(self, bus, proxy_interface):
        watcher = await NameOwnerWatcher.create(bus, MM_NAME)

        assert await watcher.get_name_owner() == ':1.20'
        proxy_interface.call_get_name_owner.assert_awaited_once_with(MM_NAME)

    async def test_no_owner(self, bus, proxy_interface):
        proxy_interface.call_get_name_owner.side_effect = DBusError(
            DBusConstants.NAME_HAS_NO_OWNER,
            'Could not get owner of name',
        )
        watcher = await NameOwnerWatcher.create(bus, MM_NAME)

        assert await watcher.get_name_owner() is None

    async def test_other_errors_propagate(self, bus, proxy_interface):
        proxy_interface.call_get_name_owner.side_effect = DBusError(
            FAILED_ERROR,
            'boom',
        )
        watcher = await NameOwnerWatcher.create(bus, MM_NAME)

        with pytest.raises(DBusError):
            await watcher.get_name_owner()

    async def test_introspection_failure(self, bus, proxy_interface):
        bus.introspect.side_effect = DBusError(FAILED_ERROR, 'no daemon')

        with pytest.raises(DBusError):
            await NameOwnerWatcher.create(bus, MM_NAME)

    async def test_owner_changes_for_watched_name(self, bus, proxy_interface):
        watcher = await NameOwnerWatcher.create(bus, MM_NAME)
        listener = MagicMock()
        watcher.subscribe(listener)
        handler = proxy_interface.on_name_owner_changed.call_args.args[0]

        handler('org.example.Other', '', ':1.3')
        handler(MM_NAME, '', ':1.40')
        handler(MM_NAME, ':1.40', '')

        assert listener.call_args_list == [
            ((None, ':1.40'),),
            ((':1.40', None),),
        ]

    async def test_close(self, bus, proxy_interface):
        watcher = await NameOwnerWatcher.create(bus, MM_NAME)
        listener = MagicMock()
        watcher.subscribe(listener)
        handler = proxy_interface.on_name_owner_changed.call_args.args[0]

        watcher.close()
        handler(MM_NAME, '', ':1.40')

        proxy_interface.off_name_owner_changed.assert_called_once_with(handler)
        listener.assert_not_called()


class TestModemManagerClient:
    async def test_get_modems(self, bus, proxy_interface):
        proxy_interface.call_get_managed_objects.return_value = {
            MODEM_0: modem_interfaces(state=0),
            MODEM_1: modem_interfaces(port='ttyUSB2'),
        }
        client = await ModemManagerClient.create(bus)

        modems = {modem.object_path: modem for modem in await client.get_modems()}

        assert set(modems) == {MODEM_0, MODEM_1}
        assert modems[MODEM_0].registration_state == 0
        assert modems[MODEM_1].primary_port == 'ttyUSB2'

    async def test_get_modems_reuses_instances(self, bus, proxy_interface):
        proxy_interface.call_get_managed_objects.return_value = {
            MODEM_0: modem_interfaces(),
        }
        client = await ModemManagerClient.create(bus)

        first = await client.get_modems()
        second = await client.get_modems()

        assert first[0] is second[0]

    async def test_get_modems_error(self, bus, proxy_interface):
        proxy_interface.call_get_managed_objects.side_effect = DBusError(
            FAILED_ERROR,
            'boom',
        )
        client = await ModemManagerClient.create(bus)

        with pytest.raises(DBusError):
            await client.get_modems()

    async def test_interfaces_added(self, bus, proxy_interface):
        client = await ModemManagerClient.create(bus)
        added = MagicMock()
        client.on_object_added(added)
        handler = proxy_interface.on_interfaces_added.call_args.args[0]

        handler(MODEM_0, {MODEM_IFACE: {'PrimaryPort': Variant('s', 'wwan0')}})
        handler(MODEM_0, {MODEM_3GPP_IFACE: {'RegistrationState': Variant('u', 3)}})

        added.assert_called_once()
        modem = added.call_args.args[0]
        assert modem.object_path == MODEM_0
        assert modem.has_3gpp
        assert modem.registration_state == 3

    async def test_interfaces_removed(self, bus, proxy_interface):
        proxy_interface.call_get_managed_objects.return_value = {
            MODEM_0: modem_interfaces(),
        }
        client = await ModemManagerClient.create(bus)
        await client.get_modems()
        removed = MagicMock()
        client.on_object_removed(removed)
        handler = proxy_interface.on_interfaces_removed.call_args.args[0]

        handler(MODEM_0, [MODEM_3GPP_IFACE])
        removed.assert_not_called()

        handler(MODEM_0, [MODEM_IFACE])
        removed.assert_called_once_with(MODEM_0)

        handler(MODEM_0, [MODEM_IFACE])
        removed.assert_called_once()

    async def test_close(self, bus, proxy_interface):
        client = await ModemManagerClient.create(bus)
        added = MagicMock()
        client.on_object_added(added)
        handler = proxy_interface.on_interfaces_added.call_args.args[0]

        client.close()
        handler(MODEM_0, modem_interfaces())

        proxy_interface.off_interfaces_added.assert_called_once()
        proxy_interface.off_interfaces_removed.assert_called_once()
        added.assert_not_called()
