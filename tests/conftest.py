"""Pytest configuration and shared fakes."""

import asyncio

import pytest
from dbus_next.errors import DBusError

from modemkick.dbus.constants import RegistrationState
from modemkick.models.settings import KickSettings

MODEM_PATH = '/org/freedesktop/ModemManager1/Modem/0'
FAILED_ERROR = 'org.freedesktop.ModemManager1.Error.Core.Failed'


async def drain(iterations: int = 200) -> None:
    """Let the event loop run ready callbacks and zero-delay timers."""
    for _ in range(iterations):
        await asyncio.sleep(0)


class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeModem:
    """Stands in for modemkick.dbus.modem.Modem."""

    def __init__(
        self,
        object_path: str = MODEM_PATH,
        registration_state: RegistrationState = RegistrationState.HOME,
        has_modem_interface: bool = True,
        primary_port: str | None = 'cdc-wdm0',
        has_3gpp: bool = True,
    ):
        self.object_path = object_path
        self.registration_state = registration_state
        self.has_modem_interface = has_modem_interface
        self.primary_port = primary_port
        self.has_3gpp = has_3gpp
        self.model = 'EG25'
        self.operator_name = ''

        self.listeners = []
        self.calls: list[str] = []
        self.failures: dict[str, int] = {}
        self.hold: asyncio.Event | None = None

    def on_registration_changed(self, listener) -> None:
        self.listeners.append(listener)

    def off_registration_changed(self, listener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def emit_registration(self, state: RegistrationState) -> None:
        self.registration_state = state
        for listener in list(self.listeners):
            listener(state)

    def fail(self, action: str, times: int = 1) -> None:
        self.failures[action] = self.failures.get(action, 0) + times

    async def _perform(self, action: str) -> None:
        self.calls.append(action)
        if self.hold is not None:
            await self.hold.wait()
        if self.failures.get(action, 0) > 0:
            self.failures[action] -= 1
            raise DBusError(FAILED_ERROR, f'{action} failed')

    async def disable(self) -> None:
        await self._perform('disable')

    async def set_power_state_low(self) -> None:
        await self._perform('low-power')

    async def enable(self) -> None:
        await self._perform('enable')


class FakeWatcher:
    """Stands in for NameOwnerWatcher."""

    def __init__(self, owner: str | None = None):
        self.owner = owner
        self.listeners = []
        self.closed = False

    def subscribe(self, listener) -> None:
        self.listeners.append(listener)

    def unsubscribe(self, listener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    async def get_name_owner(self) -> str | None:
        return self.owner

    def set_owner(self, owner: str | None) -> None:
        old_owner, self.owner = self.owner, owner
        for listener in list(self.listeners):
            listener(old_owner, owner)

    def close(self) -> None:
        self.closed = True


class FakeClient:
    """Stands in for ModemManagerClient."""

    def __init__(self, modems):
        self.modems = list(modems)
        self.added = []
        self.removed = []
        self.closed = False

    def on_object_added(self, listener) -> None:
        self.added.append(listener)

    def on_object_removed(self, listener) -> None:
        self.removed.append(listener)

    async def get_modems(self):
        return list(self.modems)

    def add(self, modem) -> None:
        for listener in list(self.added):
            listener(modem)

    def remove(self, object_path: str) -> None:
        for listener in list(self.removed):
            listener(object_path)

    def close(self) -> None:
        self.closed = True
        self.added.clear()
        self.removed.clear()


class FakeModemManager:
    """The service side: the modems it exports and the clients built."""

    def __init__(self, *modems: FakeModem):
        self.modems = {modem.object_path: modem for modem in modems}
        self.clients: list[FakeClient] = []
        self.fail_next = 0

    async def create_client(self, bus) -> FakeClient:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise DBusError(FAILED_ERROR, 'cannot create client')
        client = FakeClient(self.modems.values())
        self.clients.append(client)
        return client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Production thresholds with no delay between kick steps."""
    return KickSettings(step_delay_seconds=0)


@pytest.fixture
def modem():
    return FakeModem()
