"""Tests for modemkick/cli."""

from unittest.mock import AsyncMock, MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from modemkick.cli.commands.list_modems import (
    collect_modems,
    describe_modem,
    format_modems_table,
    list_modems,
)
from modemkick.cli.commands.run import build_settings, run
from modemkick.dbus.constants import RegistrationState
from modemkick.models.modem_info import ModemInfo

from conftest import FakeClient, FakeModem, FakeWatcher

MODEM_0 = '/org/freedesktop/ModemManager1/Modem/0'
MODEM_1 = '/org/freedesktop/ModemManager1/Modem/1'


class TestBuildSettings:
    def test_production_preset(self):
        settings = build_settings(debug=False)

        assert settings.sweep_interval_seconds == 300
        assert settings.kick_threshold_seconds == 605

    def test_debug_preset(self):
        settings = build_settings(debug=True)

        assert settings.sweep_interval_seconds == 15
        assert settings.kick_threshold_seconds == 60

    def test_overrides(self):
        settings = build_settings(
            debug=True,
            kick_threshold=120,
            step_delay=2,
            force_kick=True,
        )

        assert settings.sweep_interval_seconds == 15
        assert settings.kick_threshold_seconds == 120
        assert settings.step_delay_seconds == 2
        assert settings.force_kick is True

    def test_invalid_override(self):
        with pytest.raises(click.UsageError):
            build_settings(debug=False, max_retries=-1)


class TestRunCommand:
    def test_help(self):
        result = CliRunner().invoke(run, ['--help'])

        assert result.exit_code == 0
        assert '--force-kick' in result.output

    def test_invalid_option_is_usage_error(self):
        result = CliRunner().invoke(run, ['--step-delay', '-1'])

        assert result.exit_code == 2

    def test_bus_failure_exits_nonzero(self):
        with patch('modemkick.cli.commands.run.setup_logger'), \
                patch('modemkick.cli.commands.run.KickDaemon') as daemon:
            daemon.return_value.run = AsyncMock(
                side_effect=ConnectionError('no bus')
            )
            result = CliRunner().invoke(run, [])

        assert result.exit_code == 1
        assert 'no bus' in result.output


class TestDescribeModem:
    def test_tracked_modem(self):
        info = describe_modem(FakeModem(MODEM_0))

        assert info.object_path == MODEM_0
        assert info.primary_port == 'cdc-wdm0'
        assert info.tracked

    def test_skipped_modem(self):
        info = describe_modem(FakeModem(MODEM_0, has_3gpp=False))

        assert info.skip_reason == 'not a 3GPP modem'


class TestFormatModemsTable:
    def test_no_modems(self):
        assert format_modems_table([]) == 'No modems found.'

    def test_table(self):
        modems = [
            ModemInfo(
                object_path=MODEM_1,
                registration_state=RegistrationState.IDLE,
                skip_reason='no primary port',
            ),
            ModemInfo(
                object_path=MODEM_0,
                primary_port='cdc-wdm0',
                registration_state=RegistrationState.HOME_SMS_ONLY,
            ),
        ]

        lines = format_modems_table(modems).splitlines()

        assert lines[0].split() == ['MODEM', 'REGISTRATION', 'PORT', 'TRACKED']
        assert set(lines[1]) == {'-'}
        assert lines[2].split() == [MODEM_0, 'home-sms-only', 'cdc-wdm0', 'yes']
        assert lines[3].split() == [
            MODEM_1,
            'idle',
            '-',
            'no',
            '(no',
            'primary',
            'port)',
        ]

    def test_full_table(self):
        modems = [
            ModemInfo(
                object_path=MODEM_0,
                model='EG25-G',
                primary_port='cdc-wdm0',
                registration_state=RegistrationState.ROAMING,
            ),
        ]

        lines = format_modems_table(modems, show_full=True).splitlines()

        assert lines[0].split()[-2:] == ['MODEL', 'OPERATOR']
        assert lines[2].split()[-2:] == ['EG25-G', '-']


class TestCollectModems:
    @pytest.fixture
    def connection(self):
        connection = MagicMock()
        connection.connect = AsyncMock(return_value=MagicMock())
        return connection

    async def test_not_running(self, connection):
        watcher = FakeWatcher(owner=None)
        with patch(
            'modemkick.cli.commands.list_modems.NameOwnerWatcher.create',
            AsyncMock(return_value=watcher),
        ):
            assert await collect_modems(connection) is None

        assert watcher.closed

    async def test_lists_modems(self, connection):
        client = FakeClient([FakeModem(MODEM_0), FakeModem(MODEM_1)])
        with patch(
            'modemkick.cli.commands.list_modems.NameOwnerWatcher.create',
            AsyncMock(return_value=FakeWatcher(owner=':1.20')),
        ), patch(
            'modemkick.cli.commands.list_modems.ModemManagerClient.create',
            AsyncMock(return_value=client),
        ):
            modems = await collect_modems(connection)

        assert [modem.object_path for modem in modems] == [MODEM_0, MODEM_1]
        assert client.closed

    def test_command_when_not_running(self):
        with patch(
            'modemkick.cli.commands.list_modems.collect_modems',
            AsyncMock(return_value=None),
        ), patch(
            'modemkick.cli.commands.list_modems.DBusConnectionManager',
        ) as manager:
            manager.return_value.disconnect = AsyncMock()
            result = CliRunner().invoke(list_modems, [])

        assert result.exit_code == 0
        assert 'ModemManager is not running.' in result.output
