import click

from modemkick import __version__
from modemkick.cli.commands.list_modems import list_modems
from modemkick.cli.commands.run import run


@click.group()
@click.version_option(__version__, prog_name='modemkick')
def cli() -> None:
    """modemkick - Kick cellular modems stuck without registration.
    """


def run_cli() -> None:
    """Entry point of the modemkick command.
    """
    for command in (run, list_modems):
        cli.add_command(command)

    cli()


__all__ = [
    'cli',
    'run_cli',
]
