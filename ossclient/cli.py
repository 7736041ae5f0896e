"""Command-line interface for the object storage client.

Provides argument parsing and main entry point for running bucket and
object commands from the command line.
"""

import argparse
import os
import sys
from typing import Optional

from ossclient.client import OssClient
from ossclient.config import ConfigError, load_profiles
from ossclient.log import configure_console_logging
from ossclient.models import ClientProfile, OperationRecord, OperationStatus
from ossclient.multipart import DEFAULT_PART_SIZE
from ossclient.reporters import ConsoleReporter, JsonReporter, Reporter
from ossclient.runner import DEFAULT_SIGN_EXPIRES, CommandRunner


class CompositeReporter(Reporter):
    """Reporter that delegates to multiple reporters.

    Allows using both ConsoleReporter and JsonReporter simultaneously.
    """

    def __init__(self, reporters: list[Reporter]):
        """Initialize with list of reporters.

        Args:
            reporters: List of reporters to delegate to
        """
        self._reporters = reporters

    def on_operation_start(self, operation: str, target: str) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_operation_start(operation, target)

    def on_progress(self, operation: str, consumed: int, total: Optional[int]) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_progress(operation, consumed, total)

    def on_operation_complete(self, record: OperationRecord) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_operation_complete(record)

    def on_run_complete(self, records: list[OperationRecord]) -> None:
        """Delegate to all reporters."""
        for reporter in self._reporters:
            reporter.on_run_complete(records)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="ossclient",
        description="Work with buckets and objects on OSS-compatible storage",
    )

    parser.add_argument(
        "-c", "--config",
        default="oss.json",
        help="Path to configuration file (default: oss.json)",
    )

    parser.add_argument(
        "-p", "--profile",
        metavar="KEY",
        help="Profile to use (default: the first configured profile)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress tables and progress, show only results and errors",
    )

    parser.add_argument(
        "-j", "--json-output",
        metavar="PATH",
        help="Write JSON results to file",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level of the client library (default: WARNING)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List buckets, or objects in a bucket")
    ls.add_argument("bucket", nargs="?", default="", help="Bucket to list")
    ls.add_argument("--prefix", default="", help="Only keys starting with PREFIX")
    ls.add_argument("--delimiter", default="", help="Group keys by DELIMITER")
    ls.add_argument("--marker", default="", help="Start listing after MARKER")
    ls.add_argument("--max-keys", type=int, help="Maximum keys to return")

    put = commands.add_parser("put", help="Upload a local file")
    put.add_argument("bucket")
    put.add_argument("key")
    put.add_argument("file", help="Local file to upload")
    put.add_argument("--content-type", default="", help="Content-Type of the object")
    put.add_argument("--multipart", action="store_true", help="Upload in parts")
    put.add_argument(
        "--part-size",
        type=int,
        default=DEFAULT_PART_SIZE,
        help=f"Part size in bytes for --multipart (default: {DEFAULT_PART_SIZE})",
    )

    get = commands.add_parser("get", help="Download an object to a local file")
    get.add_argument("bucket")
    get.add_argument("key")
    get.add_argument("file", help="Local file to write")

    rm = commands.add_parser("rm", help="Delete an object")
    rm.add_argument("bucket")
    rm.add_argument("key")

    head = commands.add_parser("head", help="Show object metadata")
    head.add_argument("bucket")
    head.add_argument("key")

    sign = commands.add_parser("sign", help="Print a pre-signed URL")
    sign.add_argument("bucket")
    sign.add_argument("key")
    sign.add_argument("--method", default="GET", help="HTTP method the URL allows")
    sign.add_argument(
        "--expires",
        type=int,
        default=DEFAULT_SIGN_EXPIRES,
        help=f"Seconds until the URL expires (default: {DEFAULT_SIGN_EXPIRES})",
    )

    return parser.parse_args(argv)


def create_reporters(args: argparse.Namespace) -> list[Reporter]:
    """Create reporters based on command-line arguments.

    Args:
        args: Parsed command-line arguments

    Returns:
        List of configured reporters
    """
    reporters = []

    # Always add console reporter
    reporters.append(ConsoleReporter(quiet=args.quiet))

    # Add JSON reporter if requested
    if args.json_output:
        reporters.append(JsonReporter(output_path=args.json_output))

    return reporters


def select_profile(
    profiles: dict[str, ClientProfile],
    key: Optional[str],
) -> Optional[ClientProfile]:
    """Pick the profile named ``key``, or the first one when no key is given.

    Args:
        profiles: All available profiles
        key: Requested profile key, matched case-insensitively

    Returns:
        The selected profile, or None if no profile matches
    """
    if not key:
        return next(iter(profiles.values()), None)
    for profile_key, profile in profiles.items():
        if profile_key.lower() == key.lower():
            return profile
    return None


def run_command(runner: CommandRunner, args: argparse.Namespace) -> OperationRecord:
    """Dispatch the parsed subcommand to the runner."""
    if args.command == "ls":
        return runner.ls(
            args.bucket,
            prefix=args.prefix,
            delimiter=args.delimiter,
            marker=args.marker,
            max_keys=args.max_keys,
        )
    if args.command == "put":
        return runner.put(
            args.bucket,
            args.key,
            args.file,
            content_type=args.content_type,
            multipart=args.multipart,
            part_size=args.part_size,
        )
    if args.command == "get":
        return runner.get(args.bucket, args.key, args.file)
    if args.command == "rm":
        return runner.rm(args.bucket, args.key)
    if args.command == "head":
        return runner.head(args.bucket, args.key)
    return runner.sign(args.bucket, args.key, method=args.method, expires_in=args.expires)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for a failed operation, 2 for errors
    """
    args = parse_args(argv)

    configure_console_logging(args.log_level)

    # Load configuration
    try:
        profiles = load_profiles(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    profile = select_profile(profiles, args.profile)
    if profile is None:
        print("No matching profile found", file=sys.stderr)
        return 2

    if args.command == "put" and not os.path.isfile(args.file):
        print(f"File not found: {args.file}", file=sys.stderr)
        return 2

    # Create reporters
    reporters = create_reporters(args)
    if len(reporters) == 1:
        reporter = reporters[0]
    else:
        reporter = CompositeReporter(reporters)

    with OssClient.from_profile(profile) as client:
        runner = CommandRunner(client, reporter=reporter)
        record = run_command(runner, args)
        runner.finish()

    return 0 if record.status == OperationStatus.OK else 1


if __name__ == "__main__":
    sys.exit(main())
