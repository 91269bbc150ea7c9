#!/usr/bin/env python3
"""List every group a user or group belongs to, directly or through nesting."""

import argparse
import logging
import sys

from directory.exceptions import DirectoryError

from scripts.membership.cli_common import (
    EXIT_FAILURE,
    add_common_arguments,
    build_facade,
    configure_logging,
    emit,
    handle_keyboard_interrupt,
)


@handle_keyboard_interrupt("Script interrupted by user")
def main(argv=None):
    parser = argparse.ArgumentParser(description='Resolve the nested group membership of one account.')
    parser.add_argument('principal', help='Account name (sAMAccountName) to resolve')
    add_common_arguments(parser)
    args = parser.parse_args(argv)

    configure_logging(args.log, args.verbose)

    try:
        facade = build_facade()
        result = facade.get_group_closure(args.principal)

        if result.unresolved:
            logging.warning(f"{len(result.unresolved)} groups could not be expanded: "
                            f"{', '.join(sorted(result.unresolved))}")

        emit(result.to_dataframe(), args.output, args.force,
             title=f"Groups for {result.principal} ({len(result)})")

    except (DirectoryError, OSError) as e:
        logging.error(f"Failed: {e}")
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
