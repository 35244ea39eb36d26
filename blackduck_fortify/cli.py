import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version
from typing import Callable
from typing import Optional

import blackduck_fortify.sync
import blackduck_fortify.util
from blackduck_fortify.settings import populate_settings_from_config

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "blackduck-fortify"


def get_version_string() -> str:
    try:
        installed = version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        # Running from a source checkout that was never installed.
        installed = "dev"
    return f"{DISTRIBUTION_NAME}, version {installed}"


class CLI:
    """
    :type run: Callable[[], int]
    :param run: The resolution run the command line program executes.
    :type prog: string
    :param prog: The name of the command line program. This will be displayed in usage and help output.
    """

    def __init__(self, run: Optional[Callable[[], int]] = None, prog: Optional[str] = None):
        self.run = run if run else blackduck_fortify.sync.run
        self.prog = prog
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog=self.prog,
            description=(
                "Resolves the Black Duck project versions listed in the mapping file to Fortify application "
                "versions, creating, attributing and committing any Fortify application or version that does "
                "not exist yet. Fortify connection details are read from settings.toml or "
                "BLACKDUCK_FORTIFY_FORTIFY__* environment variables."
            ),
        )
        parser.add_argument(
            "-v",
            "--verbose",
            action="store_true",
            help="Enable verbose logging.",
        )
        parser.add_argument(
            "-q",
            "--quiet",
            action="store_true",
            help="Restrict logging to warnings and errors only.",
        )
        parser.add_argument(
            "--version",
            action="store_true",
            help="Print the version and exit.",
        )
        parser.add_argument(
            "--mapping-file",
            type=str,
            default=None,
            help=(
                "Path to the JSON mapping file. Overrides BLACKDUCK_FORTIFY_FORTIFY__MAPPING_FILE_PATH."
            ),
        )
        parser.add_argument(
            "--attribute-file",
            type=str,
            default=None,
            help=(
                "Path to a settings file whose [attributes] table holds the values of the Fortify attributes "
                "required when creating an application version, keyed by attribute name. "
                "Overrides BLACKDUCK_FORTIFY_FORTIFY__ATTRIBUTE_FILE_PATH."
            ),
        )
        parser.add_argument(
            "--max-workers",
            type=int,
            default=None,
            help="Number of Fortify application versions resolved concurrently. Defaults to 1.",
        )
        parser.add_argument(
            "--delete-partial",
            action="store_true",
            help=(
                "Delete Fortify application versions that were created during this run but could not be "
                "attributed or committed."
            ),
        )
        parser.add_argument(
            "--output",
            type=str,
            default=None,
            help="Write the resolved mapping groups to this JSON file.",
        )
        parser.add_argument(
            "--statsd-enabled",
            action="store_true",
            help="Send metrics to statsd. Host, port and prefix are read from the [statsd] settings.",
        )
        return parser

    def main(self, argv: list[str]) -> int:
        """
        Entrypoint for the command line interface.

        :param argv: The parameters supplied to the command line program.
        """
        config: argparse.Namespace = self.parser.parse_args(argv)
        if config.version:
            print(get_version_string())
            return blackduck_fortify.util.STATUS_SUCCESS

        # Logging config
        if config.verbose:
            logging.getLogger("blackduck_fortify").setLevel(logging.DEBUG)
        elif config.quiet:
            logging.getLogger("blackduck_fortify").setLevel(logging.WARNING)
        else:
            logging.getLogger("blackduck_fortify").setLevel(logging.INFO)
        logger.debug("Launching blackduck-fortify with CLI configuration: %r", vars(config))

        if config.max_workers is not None and config.max_workers < 1:
            self.parser.error("--max-workers must be at least 1")

        populate_settings_from_config(config)

        try:
            return self.run()
        except KeyboardInterrupt:
            return blackduck_fortify.util.STATUS_KEYBOARD_INTERRUPT


def main(argv=None):
    """
    Entrypoint for the default blackduck-fortify command line interface.

    :rtype: int
    :return: The return code.
    """
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    argv = argv if argv is not None else sys.argv[1:]
    sys.exit(CLI(prog="blackduck-fortify").main(argv))
