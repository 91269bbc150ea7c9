"""Shared plumbing for the membership console scripts."""

import argparse
import functools
import logging
import os
import sys
from typing import List, Optional, Sequence

import pandas as pd
from dotenv import load_dotenv

from directory.config import DirectoryConfig
from directory.facade.directory_facade import DirectoryFacade
from directory.sinks.result_sink import ConsoleResultSink, CsvResultSink

EXIT_FAILURE = 1
EXIT_CONFIG = 2


def handle_keyboard_interrupt(exit_message="Script interrupted by user"):
    """Decorator to handle KeyboardInterrupt and exit gracefully."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                logging.info(f"\n{exit_message}")
                sys.exit(0)
        return wrapper
    return decorator


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--output', '-o', help='Write results to this CSV file instead of the console')
    parser.add_argument('--force', action='store_true', help='Overwrite the output file if it exists')
    parser.add_argument('--log', nargs='?', const='membership.log',
                        help='Also log to a file. Optionally specify a file path (defaults to membership.log)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')


def add_name_arguments(parser: argparse.ArgumentParser, metavar: str) -> None:
    parser.add_argument('names', nargs='*', metavar=metavar, help=f'{metavar} account names')
    parser.add_argument('--input-csv', help=f'CSV file with a header row whose first column lists {metavar} names')


def configure_logging(log_path: Optional[str], verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stderr)]

    if log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
    )
    if log_path:
        logging.info(f"Logging to file: {log_path}")


def read_names(names: Sequence[str], input_csv: Optional[str]) -> List[str]:
    """Combine names given on the command line with the first column of a CSV."""
    collected = [n.strip() for n in names if n and n.strip()]
    if input_csv:
        frame = pd.read_csv(input_csv, dtype=str, keep_default_na=False)
        if frame.shape[1] == 0:
            raise ValueError(f"No columns found in {input_csv}")
        collected.extend(v.strip() for v in frame.iloc[:, 0].tolist())
    return collected


def build_facade() -> DirectoryFacade:
    """Build a facade from environment configuration, exiting on missing settings."""
    load_dotenv()
    config = DirectoryConfig.get_config()
    missing = DirectoryConfig.validate(config)
    if missing:
        logging.error(f"Missing required configuration: {', '.join(missing)} "
                      f"(set LDAP_SERVER, LDAP_SEARCH_BASE and LDAP_USER)")
        sys.exit(EXIT_CONFIG)
    return DirectoryFacade(config)


def emit(frame: pd.DataFrame, output: Optional[str], force: bool, title: str) -> None:
    if output:
        CsvResultSink(output, overwrite=force).write(frame, title=title)
    else:
        ConsoleResultSink().write(frame, title=title)
