"""
Command-line interface for the scanner.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from urlscanner.core import Scanner, TargetReference, validate_target
from urlscanner.errors import InvalidConfigurationError, ValidationError
from urlscanner.fetcher import DEFAULT_TIMEOUT_S, DEFAULT_USER_AGENT, close_client, init_client

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanConfig:
    """Options collected from the command line."""
    targets: List[TargetReference] = field(default_factory=list)
    output: Optional[str] = None
    depth: int = 1
    include: List[str] = field(default_factory=list)
    exclude: List[str] = field(default_factory=list)
    verbose: bool = False
    timeout_s: Optional[float] = None
    user_agent: str = DEFAULT_USER_AGENT

    def add_uri(self, value: str) -> TargetReference:
        """Validate *value* and queue it for scanning."""
        target = validate_target(value)
        self.targets.append(target)
        return target


@dataclass(slots=True)
class ScanReport:
    """Result data for a single scanned page."""
    url: str
    scanned_at: str
    status_code: Optional[int] = None
    reason: Optional[str] = None
    success: bool = False
    error: Optional[str] = None
    links: List[str] = field(default_factory=list)


def utc_now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def read_url_file(path: Path) -> List[str]:
    """Read one URL per line, skipping blank lines."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="url-scanner",
        description="Fetch web pages, report whether they are reachable and list the links they contain.",
    )
    parser.add_argument("url", nargs="?", help="The URL to scan (e.g. https://example.com)")
    parser.add_argument("-f", "--file", type=Path, help="A text file containing a list of URLs (one per line)")
    parser.add_argument("-o", "--output", help="Path to save scan results as JSON, or '-' for stdout")
    parser.add_argument("-d", "--depth", type=int, default=1, help="How deep to follow links (default: 1)")
    parser.add_argument("-i", "--include", action="append", default=[], help="Only scan URLs matching this pattern")
    parser.add_argument("-x", "--exclude", action="append", default=[], help="Exclude URLs matching this pattern")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "-t", "--timeout", type=float,
        help=f"Timeout in seconds for HTTP requests (default: {DEFAULT_TIMEOUT_S:g})",
    )
    parser.add_argument("--user-agent", default=DEFAULT_USER_AGENT, help="User-Agent header")
    return parser


def build_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> ScanConfig:
    """Turn parsed arguments into a ScanConfig, reporting invalid URLs."""
    config = ScanConfig(
        output=args.output,
        depth=args.depth,
        include=list(args.include),
        exclude=list(args.exclude),
        verbose=args.verbose,
        timeout_s=args.timeout,
        user_agent=args.user_agent,
    )

    candidates: List[str] = []
    if args.url and args.url.strip():
        candidates.append(args.url.strip())
    if args.file is not None:
        if not args.file.is_file():
            parser.error(f"URL list file not found: {args.file}")
        try:
            candidates.extend(read_url_file(args.file))
        except (OSError, UnicodeDecodeError) as e:
            parser.error(f"Cannot read URL list file {args.file}: {e}")

    for candidate in candidates:
        try:
            config.add_uri(candidate)
        except ValidationError as e:
            sys.stderr.write(f"Invalid URL: {candidate}\n")
            logger.debug("Rejected %r: %s", candidate, e)

    return config


def print_config(config: ScanConfig) -> None:
    """Print the effective scan configuration to stderr."""
    timeout = config.timeout_s if config.timeout_s is not None else DEFAULT_TIMEOUT_S
    sys.stderr.write("ScanConfig:\n")
    sys.stderr.write(f"  Output:     {config.output}\n")
    sys.stderr.write(f"  Depth:      {config.depth}\n")
    sys.stderr.write(f"  Include:    [{', '.join(config.include)}]\n")
    sys.stderr.write(f"  Exclude:    [{', '.join(config.exclude)}]\n")
    sys.stderr.write(f"  Verbose:    {config.verbose}\n")
    sys.stderr.write(f"  Timeout:    {timeout:g}s\n")
    sys.stderr.write(f"  User-Agent: {config.user_agent}\n")
    sys.stderr.write("  Uris:\n")
    for target in config.targets:
        sys.stderr.write(f"    {target.url}\n")
    sys.stderr.write("\n")


def print_scan(scanner: Scanner, links: List[str]) -> None:
    """Print one scan result to stdout."""
    status = scanner.status_code if scanner.status_code is not None else "ERR"
    print(f"Scanned {scanner.url}: {status}")

    if not scanner.is_success:
        print(f"  Link unreachable: {scanner.error_message}")
    if links:
        print("  Links found:")
        for link in links:
            print(f"    {link}")
    elif scanner.body_as_bytes() is not None:
        print("  No links found.")


def to_report(scanner: Scanner, links: List[str], scanned_at: str) -> ScanReport:
    return ScanReport(
        url=scanner.url,
        scanned_at=scanned_at,
        status_code=scanner.status_code,
        reason=scanner.reason_phrase,
        success=scanner.is_success,
        error=scanner.error_message,
        links=links,
    )


async def scan_targets(targets: Sequence[TargetReference]) -> List[Tuple[Scanner, str]]:
    """Scan each target in turn, one page at a time."""
    scans: List[Tuple[Scanner, str]] = []
    for target in targets:
        scanned_at = utc_now_iso()
        logger.debug("Scanning %s", target.url)
        scans.append((await Scanner.create(target), scanned_at))
    return scans


def write_reports(reports: List[ScanReport], output: str, verbose: bool) -> None:
    payload = [asdict(r) for r in reports]
    json_text = json.dumps(payload, ensure_ascii=False, indent=2)

    if output == "-":
        print(json_text)
        return

    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json_text, encoding="utf-8")
    if verbose:
        sys.stderr.write(f"Results written to: {output_path}\n")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the scanner CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stderr,
    )

    config = build_config(args, parser)

    try:
        init_client(
            timeout_s=config.timeout_s if config.timeout_s is not None else DEFAULT_TIMEOUT_S,
            user_agent=config.user_agent,
        )
    except InvalidConfigurationError as e:
        parser.error(str(e))

    print_config(config)

    if not config.targets:
        sys.stderr.write("No valid URLs to scan.\n")
        close_client()
        return 1

    try:
        scans = asyncio.run(scan_targets(config.targets))
    finally:
        close_client()

    reports: List[ScanReport] = []
    for scanner, scanned_at in scans:
        links = scanner.extract_hyperlinks()
        if config.output != "-":
            print_scan(scanner, links)
        reports.append(to_report(scanner, links, scanned_at))

    if config.verbose:
        failed = sum(1 for r in reports if not r.success)
        sys.stderr.write(f"\nScanned {len(reports)} URL(s), {failed} unreachable.\n")

    if config.output:
        write_reports(reports, config.output, config.verbose)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
