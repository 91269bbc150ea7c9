#!/usr/bin/env python3
"""Compare the group memberships of several accounts, hiding groups they all share."""

import argparse
import logging
import sys

from directory.exceptions import DirectoryError
from services.difference_engine import MISSING_ABORT, MISSING_EMPTY

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
    parser = argparse.ArgumentParser(description='Show the groups that differ between two or more accounts.')
    add_name_arguments(parser, 'PRINCIPAL')
    parser.add_argument('--transitive', action='store_true',
                        help='Compare nested membership instead of direct membership')
    parser.add_argument('--missing', choices=[MISSING_ABORT, MISSING_EMPTY], default=MISSING_ABORT,
                        help='Abort when an account cannot be found, or compare it as having no groups')
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.log, args.verbose)

    try:
        principals = read_names(args.names, args.input_csv)
        facade = build_facade()
        table = facade.compare_principals(
            principals, transitive=args.transitive, on_missing=args.missing
        )

        if table.unresolved:
            logging.warning(f"Compared as empty (not resolvable): {', '.join(table.unresolved)}")
        logging.info(f"{len(table.shared_groups)} groups shared by all accounts were omitted")

        emit(table.to_dataframe(), args.output, args.force,
             title=f"Group differences for {', '.join(table.principals)}")

    except (DirectoryError, OSError, ValueError) as e:
        logging.error(f"Failed: {e}")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
