"""Main CLI entry point for gomodcheck."""

import argparse
import logging
import sys
from typing import List, Optional

from . import __version__
from .errors import ConfigurationError, GoModCheckError
from .formatters import OutputFormatter
from .package_loader import PackageLoader
from .reconciler import MatchConfiguration, ModCheck

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, log_level: Optional[str] = None):
    """Configure logging based on verbosity flags."""
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(levelname)s: %(message)s'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='gomodcheck',
        description='Ensure module versions remain consistent across a project and its dependencies.'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('package', help='Package pattern to check (for example ./...)')
    parser.add_argument('--match-dep', dest='match_deps', action='append', default=[],
                        metavar='DEP:MODULE',
                        help='Require MODULE to have the same version in DEP\'s go.mod as in this '
                             'project. Repeatable, comma separated values allowed')
    parser.add_argument('--match-replaces', dest='match_replaces', action='append', default=[],
                        metavar='DEP',
                        help='Require every module replaced in DEP\'s go.mod to have the same version '
                             'in this project. Repeatable, comma separated values allowed')
    parser.add_argument('--format', dest='output_format', default='text',
                        choices=['text', 'json'],
                        help='Output format (text, json). Default: text')
    parser.add_argument('--go-command', default='go',
                        help='go binary used to load packages. Default: go')
    parser.add_argument('-C', '--dir', dest='work_dir', default=None,
                        help='Directory to run go list in. Default: current directory')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')
    parser.add_argument('--loglevel',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Set log level')
    return parser


def handle_check(args, config: MatchConfiguration) -> int:
    """Run the check and report mismatches."""
    if config.is_empty():
        logger.info("No --match-dep or --match-replaces given; nothing to check")

    loader = PackageLoader(go_command=args.go_command, work_dir=args.work_dir)
    packages = loader.load(args.package)

    check = ModCheck(config)
    mismatches = check.run(packages)

    if args.output_format == 'json':
        print(OutputFormatter.format_as_json(mismatches), end='')
    else:
        sys.stderr.write(OutputFormatter.format_as_text(mismatches))

    if mismatches:
        logger.info(f"Found {len(mismatches)} dependency mismatches")
        print("found dependency mismatches", file=sys.stderr)
        return 1

    logger.info("No dependency mismatches found")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.loglevel)

    # Flag problems are usage errors and exit before anything is loaded.
    try:
        config = MatchConfiguration.from_flags(args.match_deps, args.match_replaces)
    except ConfigurationError as e:
        parser.error(f"parsing flags: {e}")

    try:
        return handle_check(args, config)
    except GoModCheckError as e:
        logger.error(f"{e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
