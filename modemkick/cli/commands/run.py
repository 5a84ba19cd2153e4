import asyncio
import sys

import click
from dbus_next.errors import DBusError
from pydantic import ValidationError

from modemkick.config import setup_logger
from modemkick.models.settings import KickSettings
from modemkick.watchdog.daemon import KickDaemon


def build_settings(
    debug: bool,
    sweep_interval: float | None = None,
    kick_threshold: float | None = None,
    step_delay: float | None = None,
    max_retries: int | None = None,
    force_kick: bool = False,
) -> KickSettings:
    """Pick the timing preset and apply command line overrides.

    Raises:
        click.UsageError: If an override is out of range
    """
    preset = KickSettings.debug() if debug else KickSettings.production()

    try:
        return preset.with_overrides(
            sweep_interval_seconds=sweep_interval,
            kick_threshold_seconds=kick_threshold,
            step_delay_seconds=step_delay,
            max_retries=max_retries,
            force_kick=force_kick or None,
        )
    except ValidationError as e:
        raise click.UsageError(f'Invalid settings: {e}')


@click.command('run')
@click.option(
    '--debug',
    is_flag=True,
    help='Use accelerated timings (15s sweep, 60s threshold) and debug logs.',
)
@click.option(
    '--sweep-interval',
    type=float,
    default=None,
    help='Seconds between idle sweeps.',
)
@click.option(
    '--kick-threshold',
    type=float,
    default=None,
    help='Seconds a modem must stay idle/denied before it is kicked.',
)
@click.option(
    '--step-delay',
    type=float,
    default=None,
    help='Seconds to wait before each recovery step.',
)
@click.option(
    '--max-retries',
    type=int,
    default=None,
    help='Failed steps tolerated per recovery attempt.',
)
@click.option(
    '--force-kick',
    is_flag=True,
    help='Kick every tracked modem on each sweep, stuck or not.',
)
def run(
    debug: bool,
    sweep_interval: float | None,
    kick_threshold: float | None,
    step_delay: float | None,
    max_retries: int | None,
    force_kick: bool,
) -> None:
    """Run the modem watchdog daemon.
    """
    settings = build_settings(
        debug,
        sweep_interval,
        kick_threshold,
        step_delay,
        max_retries,
        force_kick,
    )
    setup_logger(debug)

    daemon = KickDaemon(settings)
    try:
        asyncio.run(daemon.run())
    except (ConnectionError, DBusError, RuntimeError) as e:
        click.echo(f'Error: {e}', err=True)
        sys.exit(1)
