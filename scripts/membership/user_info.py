#!/usr/bin/env python3
"""Look up name, contact and account status fields for a list of users."""

import argparse
import logging
import sys

from directory.exceptions import DirectoryError

from scripts.membership.cli_common import (
    EXIT_FAILURE,
    add_common_arguments,
    add_name_arguments,
    build_facade,
    configure_logging,
    emit,
    handle_keyboard_interrupt,
    read_names,
)


@handle_keyboard_interrupt("Script interrupted by user")
def main(argv=None):
    parser = argparse.ArgumentParser(description='Look up attributes for a list of users.')
    add_name_arguments(parser, 'USER')
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.log, args.verbose)

    try:
        users = read_names(args.names, args.input_csv)
        facade = build_facade()
        frame = facade.get_user_info(users)
        emit(frame, args.output, args.force, title=f"User info ({len(frame)} users)")

    except (DirectoryError, OSError, ValueError) as e:
        logging.error(f"Failed: {e}")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
