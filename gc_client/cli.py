import argparse
import json
import os
import sys
from pathlib import Path

from gc_common.models import AnalyzedResult, JobStatus

from .client import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_SERVER_URL,
    request_analyzed_data,
    submit_log,
    wait_for_result,
)


def get_server_url() -> str:
    """
    Get the GC analysis server URL from environment variable or use default.

    Environment variables:
    - GC_SERVER_URL: Custom server URL (useful for testing with different ports)
    """
    return os.environ.get("GC_SERVER_URL", DEFAULT_SERVER_URL)


def get_chunk_size() -> int:
    """
    Get the upload chunk size from environment variable or use default.

    Environment variables:
    - GC_CHUNK_SIZE: Bytes per uploaded chunk
    """
    try:
        size = int(os.environ.get("GC_CHUNK_SIZE", DEFAULT_CHUNK_SIZE))
    except ValueError:
        return DEFAULT_CHUNK_SIZE
    return size if size > 0 else DEFAULT_CHUNK_SIZE


def format_result(result: AnalyzedResult) -> str:
    """Render an analysis result as a human-readable report."""
    lines = [f"Status: {result.status.value}"]
    if result.message:
        lines.append(f"Message: {result.message}")
    if result.result_data is None:
        return "\n".join(lines)

    lines.append("")
    lines.append(
        f"{'TYPE':<18} {'COUNT':>6} {'TOTAL(s)':>10} {'MEAN(s)':>10} "
        f"{'STDDEV(s)':>10} {'MEDIAN(s)':>10} {'MAX(s)':>10}"
    )
    lines.append("-" * 80)
    for stat in result.result_data.pauses:
        max_pause = stat.max_event.pause_time if stat.max_event is not None else 0.0
        lines.append(
            f"{stat.type.name:<18} {stat.count:>6} {stat.total_pause_time:>10.4f} "
            f"{stat.sample_mean:>10.4f} {stat.sample_std_dev:>10.4f} "
            f"{stat.sample_median:>10.4f} {max_pause:>10.4f}"
        )
        for estimate in stat.means:
            lines.append(
                f"    mean @ level {estimate.level:<5g} "
                f"[{estimate.mean.lower:.4f}, {estimate.mean.upper:.4f}]"
            )
        for outliers in stat.outliers:
            lines.append(
                f"    outliers @ level {outliers.level:<5g} {len(outliers.events)}"
            )

    if result.result_data.concurrences:
        lines.append("")
        lines.append("CMS concurrent phases:")
        for concurrent in result.result_data.concurrences:
            lines.append(f"    {concurrent.type_detail or '(none)':<30} {concurrent.count}")

    return "\n".join(lines)


def print_result(result: AnalyzedResult, json_mode: bool) -> None:
    if json_mode:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_result(result))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the GC analysis CLI."""
    parser = argparse.ArgumentParser(description="GC log analysis CLI")
    subparsers = parser.add_subparsers(dest="command")

    # gc-analyze submit <file> [--wait] [--json]
    submit_parser = subparsers.add_parser(
        "submit", help="Upload a GC log file for analysis"
    )
    submit_parser.add_argument("file", type=Path, help="GC log file to upload")
    submit_parser.add_argument(
        "--wait",
        action="store_true",
        help="Wait for the analysis to finish and print the result",
    )
    submit_parser.add_argument(
        "--timeout",
        type=float,
        default=300.0,
        help="Seconds to wait with --wait (default: 300)",
    )
    submit_parser.add_argument(
        "--json", dest="json_mode", action="store_true", help="Output in JSON format"
    )

    # gc-analyze status <ticket> [--json]
    status_parser = subparsers.add_parser(
        "status", help="Show the analysis status and result of a ticket"
    )
    status_parser.add_argument("ticket", type=int, help="Ticket number")
    status_parser.add_argument(
        "--json", dest="json_mode", action="store_true", help="Output in JSON format"
    )

    args = parser.parse_args(argv)
    server_url = get_server_url()

    if args.command == "submit":
        if not args.file.is_file():
            print(f"Error: {args.file} is not a file", file=sys.stderr)
            sys.exit(1)
        try:
            ticket, filesize = submit_log(
                args.file, server_url=server_url, chunk_size=get_chunk_size()
            )
            print(f"Ticket: {ticket} ({filesize} bytes uploaded)", file=sys.stderr)
            if not args.wait:
                print(ticket)
                sys.exit(0)

            result = wait_for_result(ticket, server_url=server_url, timeout=args.timeout)
            print_result(result, args.json_mode)
            sys.exit(0 if result.status == JobStatus.COMPLETED else 1)
        except (RuntimeError, TimeoutError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except KeyboardInterrupt:
            print("\n\nStopped waiting.", file=sys.stderr)
            print(
                "The analysis continues on the server. Use 'gc-analyze status' to check it.",
                file=sys.stderr,
            )
            sys.exit(130)  # Standard exit code for SIGINT

    elif args.command == "status":
        try:
            result = request_analyzed_data(args.ticket, server_url=server_url)
        except RuntimeError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print_result(result, args.json_mode)
        sys.exit(0 if result.status != JobStatus.ERROR else 1)

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
