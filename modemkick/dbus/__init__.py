from modemkick.dbus.connection import DBusConnectionManager
from modemkick.dbus.manager import ModemManagerClient, NameOwnerWatcher
from modemkick.dbus.modem import Modem
from modemkick.dbus.types import DBusVariantValue

__all__ = [
    'DBusConnectionManager',
    'DBusVariantValue',
    'Modem',
    'ModemManagerClient',
    'NameOwnerWatcher',
]
