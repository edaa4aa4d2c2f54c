"""Main entry point for the terminal technology tracker.

Configuration comes from options or their TECHTRACKER_* environment
variables; logging goes to stderr so it does not interleave with the board.
"""
import logging
from pathlib import Path

import click

from cli import CLI
from storage import DATA_FILE, JsonFileStorage
from store import ProgressStore

LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR']


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@click.command()
@click.option('--data-file', type=click.Path(dir_okay=False, path_type=Path),
              envvar='TECHTRACKER_DATA_FILE', default=DATA_FILE, show_default=True,
              help='JSON file holding saved progress.')
@click.option('--log-level', type=click.Choice(LOG_LEVELS, case_sensitive=False),
              envvar='TECHTRACKER_LOG_LEVEL', default='WARNING', show_default=True)
@click.option('--alt-screen/--no-alt-screen', envvar='TECHTRACKER_ALT_SCREEN', default=True,
              help='Draw in the terminal alternate screen buffer.')
def main(data_file: Path, log_level: str, alt_screen: bool) -> None:
    """Track progress through a catalog of learning technologies."""
    configure_logging(log_level)
    store = ProgressStore(JsonFileStorage(data_file))
    CLI(store, alt_screen=alt_screen).run()


if __name__ == "__main__":
    main()
