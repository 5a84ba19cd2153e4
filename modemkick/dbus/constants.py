from enum import IntEnum, StrEnum
from typing import Final


class DBusConstants(StrEnum):
    """Standard D-Bus service and interface constants.
    """

    # D-Bus daemon service constants
    SERVICE_NAME = 'org.freedesktop.DBus'
    OBJECT_PATH = '/org/freedesktop/DBus'
    INTERFACE = 'org.freedesktop.DBus'

    # Standard D-Bus interfaces
    PROPERTIES_INTERFACE = 'org.freedesktop.DBus.Properties'
    OBJECT_MANAGER_INTERFACE = 'org.freedesktop.DBus.ObjectManager'

    # Error raised by GetNameOwner for a name nobody owns
    NAME_HAS_NO_OWNER = 'org.freedesktop.DBus.Error.NameHasNoOwner'


class ModemManagerDBusConstants(StrEnum):
    """ModemManager D-Bus service and interface constants.
    """

    # Service identification
    SERVICE_NAME = 'org.freedesktop.ModemManager1'
    OBJECT_PATH = '/org/freedesktop/ModemManager1'

    # Per-modem interfaces
    MODEM_INTERFACE = 'org.freedesktop.ModemManager1.Modem'
    MODEM_3GPP_INTERFACE = 'org.freedesktop.ModemManager1.Modem.Modem3gpp'


class ModemPropertyNames(StrEnum):
    """ModemManager property names used by the watchdog.
    """

    # org.freedesktop.ModemManager1.Modem
    PRIMARY_PORT = 'PrimaryPort'
    STATE = 'State'
    MODEL = 'Model'

    # org.freedesktop.ModemManager1.Modem.Modem3gpp
    REGISTRATION_STATE = 'RegistrationState'
    OPERATOR_NAME = 'OperatorName'


class RegistrationState(IntEnum):
    """3GPP registration states (MMModem3gppRegistrationState).
    """

    IDLE = 0
    HOME = 1
    SEARCHING = 2
    DENIED = 3
    UNKNOWN = 4
    ROAMING = 5
    HOME_SMS_ONLY = 6
    ROAMING_SMS_ONLY = 7
    EMERGENCY_ONLY = 8
    HOME_CSFB_NOT_PREFERRED = 9
    ROAMING_CSFB_NOT_PREFERRED = 10
    ATTACHED_RLOS = 11

    @classmethod
    def parse(cls, value: int) -> 'RegistrationState':
        """Map a raw D-Bus value to a member, falling back to UNKNOWN.
        """
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @property
    def label(self) -> str:
        """Lowercase name as printed by mmcli.
        """
        return self.name.lower().replace('_', '-')


class PowerState(IntEnum):
    """Modem power states (MMModemPowerState).
    """

    UNKNOWN = 0
    OFF = 1
    LOW = 2
    ON = 3


class ConnectionConfig:
    """Configuration constants for D-Bus connection.
    """

    DEFAULT_MAX_RETRIES: Final[int] = 5
    DEFAULT_INITIAL_BACKOFF: Final[float] = 1.0
    BACKOFF_MULTIPLIER: Final[float] = 2.0
