#!/usr/bin/env python3
"""Look up creation date, description, category and scope for a list of groups."""

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
    parser = argparse.ArgumentParser(description='Look up attributes for a list of groups.')
    add_name_arguments(parser, 'GROUP')
    parser.add_argument('--member-count', action='store_true',
                        help='Also count members (one extra directory query per group)')
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.log, args.verbose)

    try:
        groups = read_names(args.names, args.input_csv)
        facade = build_facade()
        frame = facade.get_group_info(groups, include_member_count=args.member_count)
        emit(frame, args.output, args.force, title=f"Group info ({len(frame)} groups)")

    except (DirectoryError, OSError, ValueError) as e:
        logging.error(f"Failed: {e}")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
