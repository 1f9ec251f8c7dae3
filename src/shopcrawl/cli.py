"""Command-line interface for the product URL crawler."""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from shopcrawl.browser_config import BROWSER_PRESETS, browser_config_for
from shopcrawl.config import CrawlConfig
from shopcrawl.constants import CONCURRENCY_PARALLEL, CONCURRENCY_SEQUENTIAL, ISOLATION_PER_DOMAIN, ISOLATION_SHARED
from shopcrawl.errors import ConfigError, ParseError
from shopcrawl.infrastructure.timing_evasion import TIMING_PROFILES, TimingProfile
from shopcrawl.logging_config import setup_logging
from shopcrawl.models import CrawlReport, CrawlTarget
from shopcrawl.orchestrator import CrawlOrchestrator
from shopcrawl.output_manager import OutputManager

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shopcrawl",
        description="Discover product page URLs on e-commerce sites",
    )
    parser.add_argument('domains', nargs='*',
                        help='Domains or base URLs to crawl (e.g. etsy.com, https://www.westside.com)')
    parser.add_argument('--domains-file', type=str, default=None,
                        help='File with one domain per line (blank lines and # comments ignored)')
    parser.add_argument('--config', type=str, default=None,
                        help='JSON configuration file (default: SHOPCRAWL_* environment variables)')

    # Traversal
    parser.add_argument('--max-depth', type=int, default=None,
                        help='Deepest BFS level to crawl (default: 3)')
    parser.add_argument('--max-links', type=int, default=None,
                        help='Process at most this many links per page')
    parser.add_argument('--max-pages', type=int, default=None,
                        help='Page budget per domain (default: 500)')
    parser.add_argument('--max-duration', type=float, default=None,
                        help='Wall-clock budget per domain in seconds')
    parser.add_argument('--max-retries', type=int, default=None,
                        help='Retries for a navigation that times out or hits a 5xx (default: 3)')
    parser.add_argument('--retry-delay', type=float, default=None,
                        help='Seconds before the first retry; doubles each time (default: 2.0)')

    # Pacing
    parser.add_argument('--min-delay', type=float, default=None,
                        help='Minimum wait before each navigation in seconds (default: 1.0)')
    parser.add_argument('--max-delay', type=float, default=None,
                        help='Maximum wait before each navigation in seconds (default: 3.0)')
    parser.add_argument('--no-pacing', action='store_true',
                        help='Disable waits between navigations')
    parser.add_argument('--timing-profile', choices=[p.value for p in TimingProfile], default=None,
                        help='Use the delay range of a preset timing profile')
    parser.add_argument('--max-scrolls', type=int, default=None,
                        help='Scroll attempts for lazy-loaded content (default: 3)')

    # Classification
    parser.add_argument('--verify', action='store_true',
                        help='Confirm product candidates by checking price/add-to-cart/title on the page')

    # Concurrency
    concurrency = parser.add_mutually_exclusive_group()
    concurrency.add_argument('--sequential', action='store_true',
                             help='Crawl one domain at a time')
    concurrency.add_argument('--parallel', type=int, metavar='N', default=None,
                             help='Crawl up to N domains at once (default mode)')
    parser.add_argument('--cooldown', type=float, default=None,
                        help='Seconds to wait between domains in sequential mode')
    parser.add_argument('--isolation', choices=[ISOLATION_SHARED, ISOLATION_PER_DOMAIN], default=None,
                        help='One browser for the run (shared) or one per domain (per_domain)')

    # Output and browser
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Directory for result files (default: output)')
    parser.add_argument('--browser-preset', choices=sorted(BROWSER_PRESETS), default='default',
                        help='Browser settings preset: fast (short timeouts, DOM-ready), '
                             'stealth (long timeouts, extra launch flags)')
    parser.add_argument('--headed', action='store_true',
                        help='Show the browser window')
    parser.add_argument('--log-level', default=None,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level (default: SHOPCRAWL_LOG_LEVEL or INFO)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write logs to this file')
    return parser


def read_domains_file(path: str) -> List[str]:
    """Read domains from a file, one per line."""
    domains = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.split('#', 1)[0].strip()
            if line:
                domains.append(line)
    return domains


def build_config(args: argparse.Namespace) -> CrawlConfig:
    """Load the base configuration and apply command-line overrides."""
    config = CrawlConfig.from_file(args.config) if args.config else CrawlConfig.from_env()

    if args.timing_profile:
        profile = TIMING_PROFILES[TimingProfile(args.timing_profile)]
        config.min_delay = profile.min_page_delay
        config.max_delay = profile.max_page_delay

    overrides = {
        'max_depth': args.max_depth,
        'max_links_per_page': args.max_links,
        'max_pages_per_domain': args.max_pages,
        'max_duration_seconds': args.max_duration,
        'max_retries': args.max_retries,
        'retry_delay': args.retry_delay,
        'min_delay': args.min_delay,
        'max_delay': args.max_delay,
        'max_scroll_attempts': args.max_scrolls,
        'domain_cooldown_seconds': args.cooldown,
        'isolation': args.isolation,
        'output_dir': args.output_dir,
    }
    for name, value in overrides.items():
        if value is not None:
            setattr(config, name, value)

    if args.no_pacing:
        config.pacing_enabled = False
    if args.verify:
        config.verify_content = True
    if args.sequential:
        config.concurrency = CONCURRENCY_SEQUENTIAL
    elif args.parallel is not None:
        config.concurrency = CONCURRENCY_PARALLEL
        config.parallelism = args.parallel

    return config.validate()


def print_report(report: CrawlReport) -> None:
    """Print a per-domain result table."""
    print(f"\n{'=' * 60}")
    print("Product URL discovery results")
    print(f"{'=' * 60}")
    for outcome in report.outcomes:
        line = (
            f"  {outcome.domain:<30} {len(outcome.confirmed):>5} confirmed "
            f"{len(outcome.failed):>5} failed  [{outcome.status.value}]"
        )
        print(line)
        if outcome.error:
            print(f"      error: {outcome.error}")
    print(f"{'=' * 60}\n")


def main(argv: Optional[List[str]] = None) -> int:
    """Run the crawler from the command line.

    Returns:
        0 when results were written, 1 when writing failed, 2 on usage errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.log_file)

    raw_domains = list(args.domains)
    if args.domains_file:
        try:
            raw_domains.extend(read_domains_file(args.domains_file))
        except OSError as e:
            parser.error(f"cannot read domains file: {e}")
    if not raw_domains:
        parser.error("no domains given (pass them as arguments or via --domains-file)")

    try:
        targets = [CrawlTarget.from_string(domain) for domain in raw_domains]
    except (ValueError, ParseError) as e:
        parser.error(f"invalid domain: {e}")

    try:
        config = build_config(args)
    except (ConfigError, ValueError, OSError) as e:
        parser.error(f"invalid configuration: {e}")

    browser_config = browser_config_for(args.browser_preset, headless=not args.headed)
    orchestrator = CrawlOrchestrator(config, browser_config=browser_config)

    started_at = datetime.now()
    report = asyncio.run(orchestrator.run(targets))
    print_report(report)

    output = OutputManager(config.output_dir)
    try:
        written = output.save_report(report)
        output.save_summary(report, started_at=started_at)
    except OSError as e:
        logger.error(f"Failed to write results to {Path(config.output_dir)}: {e}")
        return 1

    for kind, path in written.items():
        print(f"{kind.capitalize()} results: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
