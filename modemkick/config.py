import logging

from systemd.journal import JournalHandler


def setup_logger(debug: bool = False) -> None:
    """Configure logging to use systemd journal.
    """
    app_logger = logging.getLogger('modemkick')
    app_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    journal_handler = JournalHandler(SYSLOG_IDENTIFIER='modemkick')

    app_logger.addHandler(journal_handler)
