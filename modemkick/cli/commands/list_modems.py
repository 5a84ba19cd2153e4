import asyncio

import click
from dbus_next.errors import DBusError

from modemkick.dbus.connection import DBusConnectionManager
from modemkick.dbus.constants import ModemManagerDBusConstants
from modemkick.dbus.manager import ModemManagerClient, NameOwnerWatcher
from modemkick.dbus.modem import Modem
from modemkick.models.modem_info import ModemInfo
from modemkick.watchdog.registry import skip_reason


def describe_modem(modem: Modem) -> ModemInfo:
    """Build the list-modems view of a modem.
    """
    return ModemInfo(
        object_path=modem.object_path,
        model=modem.model,
        primary_port=modem.primary_port,
        registration_state=modem.registration_state,
        operator_name=modem.operator_name,
        skip_reason=skip_reason(modem),
    )


async def collect_modems(
    connection: DBusConnectionManager,
) -> list[ModemInfo] | None:
    """Read ModemManager's modems once.

    Returns:
        The modems, or None if ModemManager is not running
    """
    bus = await connection.connect()

    watcher = await NameOwnerWatcher.create(
        bus,
        ModemManagerDBusConstants.SERVICE_NAME,
    )
    try:
        owner = await watcher.get_name_owner()
    finally:
        watcher.close()

    if not owner:
        return None

    client = await ModemManagerClient.create(bus)
    try:
        modems = await client.get_modems()
        return [describe_modem(modem) for modem in modems]
    finally:
        client.close()


def format_modems_table(
    modems: list[ModemInfo],
    show_full: bool = False,
) -> str:
    """Format modems into a simple table.
    """
    if not modems:
        return 'No modems found.'

    rows = []
    for modem in sorted(modems, key=lambda m: m.object_path):
        row = [
            modem.object_path,
            modem.registration_state.label,
            modem.primary_port or '-',
            'yes' if modem.tracked else f'no ({modem.skip_reason})',
        ]
        if show_full:
            row.extend([modem.model or '-', modem.operator_name or '-'])
        rows.append(row)

    headers = ['MODEM', 'REGISTRATION', 'PORT', 'TRACKED']
    if show_full:
        headers.extend(['MODEL', 'OPERATOR'])

    # Calculate column widths
    widths = [
        max(len(headers[i]), max(len(row[i]) for row in rows))
        for i in range(len(headers))
    ]

    def format_row(values: list[str]) -> str:
        return ' '.join(
            f'{value:<{width}}' for value, width in zip(values, widths)
        ).rstrip()

    header = format_row(headers)
    lines = [header, '-' * len(header)]
    lines.extend(format_row(row) for row in rows)

    return '\n'.join(lines)


@click.command('list-modems')
@click.option(
    '--full',
    is_flag=True,
    help='Show full information including model and operator.',
)
def list_modems(full: bool) -> None:
    """List ModemManager's modems and whether they would be watched.
    """
    async def _list_modems() -> None:
        connection = DBusConnectionManager(max_retries=1)
        try:
            modems = await collect_modems(connection)
        except (ConnectionError, DBusError) as e:
            click.echo(f'Error: {e}', err=True)
            return
        finally:
            await connection.disconnect()

        if modems is None:
            click.echo('ModemManager is not running.')
            return

        click.echo(format_modems_table(modems, show_full=full))

    asyncio.run(_list_modems())
