"""Command line entry point for podget."""

import logging
import sys
from typing import Optional, Sequence

from podget.argparse_shared import (
    add_destination_argument,
    add_feed_urls_argument,
    add_no_tag_argument,
    add_podtrac_argument,
    add_rerun_argument,
    add_verbosity_arguments,
    get_base_parser,
)
from podget.config import Config
from podget.podcast.naming import ExtractionInstructionError, parse_extraction_instruction
from podget.workflow.config import RunConfig
from podget.workflow.orchestrator import Orchestrator

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self.max_level


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Send progress (INFO/DEBUG) to stdout and problems to stderr.

    Progress is only shown with -v or --debug; warnings and errors are
    always shown.
    """
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.addFilter(_MaxLevelFilter(logging.INFO))
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[stdout_handler, stderr_handler],
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    if not debug:
        logging.getLogger("urllib3").setLevel("WARNING")


def build_parser():
    parser = get_base_parser()
    add_destination_argument(parser)
    add_verbosity_arguments(parser)
    add_rerun_argument(parser)
    add_podtrac_argument(parser)
    add_no_tag_argument(parser)
    add_feed_urls_argument(parser)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run podget.

    Returns:
        Process exit status: 0 when the run completes (individual feed or
        download failures are logged, not fatal), 1 on a fatal error.
        Invalid arguments exit with status 2 before anything is fetched.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, debug=args.debug)

    try:
        rule = parse_extraction_instruction(args.podtrac)
    except ExtractionInstructionError as e:
        parser.error(f"--podtrac: {e}")

    try:
        config = Config(env_file=args.env_file)
        run_config = RunConfig.from_config(
            config,
            download_directory=args.destination,
            max_age_days=args.rerun,
            extraction_rule=rule,
            tagging_enabled=not args.no_tag,
        )
    except ValueError as e:
        parser.error(str(e))

    logging.debug(f"Download directory: {run_config.download_directory}")
    logging.debug(f"Rerun window: {run_config.staleness.max_age_days} day(s)")

    try:
        Orchestrator(config=config, run_config=run_config).run(args.feed_urls)
    except KeyboardInterrupt:
        logging.warning("podget interrupted by user")
        return 1
    except Exception:
        logging.exception("podget failed")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
