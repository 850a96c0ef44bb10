#!/usr/bin/env python3
"""
Main entry point for the site cloner.
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from site_cloner.cloner import clone_site
from site_cloner.crawler.url_frontier import CrawlJob
from site_cloner.errors import ClonerError, InvalidInputError
from site_cloner.server import run_server
from site_cloner.utils.config import Config, load_config
from site_cloner.utils.logger import setup_logging
from site_cloner.utils.monitoring import CrawlerMonitor


class ClonerApp:
    """Main application class for the site cloner."""

    def __init__(self, config: Config):
        self.config = config
        self.logger = logging.getLogger(__name__)

    async def run(self, url: str, max_depth: Optional[int], output_dir: str,
                  archive: Optional[str]) -> int:
        """Run one clone job."""
        try:
            job = CrawlJob.create(url, max_depth, output_dir)
        except InvalidInputError as e:
            self.logger.error(f"Invalid input: {e}")
            return 2

        self.logger.info("=== SITE CLONER STARTING ===")
        self.logger.info(f"Target: {job.target_url}")
        self.logger.info(f"Max depth: {job.max_depth}")
        self.logger.info(f"Output directory: {job.output_root}")
        self.logger.info(f"Max concurrent requests: {self.config.crawler.max_concurrent_requests}")

        if job.output_root.is_dir() and any(job.output_root.iterdir()):
            self.logger.warning(f"Output directory {job.output_root} is not empty; "
                                f"only files saved by this run are archived")

        monitor = CrawlerMonitor()
        if self.config.monitoring.metrics_enabled:
            monitor.start_server(self.config.monitoring.prometheus_port)

        try:
            result = await clone_site(job, self.config, archive_path=archive, monitor=monitor)
        except ClonerError as e:
            self.logger.error(f"Clone failed: {e}")
            return 1
        finally:
            self.logger.info("=== SITE CLONER FINISHED ===")

        report = result.report
        self.logger.info(f"Saved {report.stats.pages_saved} pages and "
                         f"{report.stats.assets_saved} assets, "
                         f"{len(report.failed_urls)} resources skipped")
        if result.archive_path:
            self.logger.info(f"Archive: {result.archive_path}")
        return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Mirror a website for offline use and package it as a zip",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py https://example.com                  # Clone to ./copied-site and cloned-site.zip
  python main.py https://example.com --depth 0        # Root page and its assets only
  python main.py https://example.com --no-archive     # Keep the mirror, skip the zip
  python main.py --serve --port 3000                  # Run the HTTP front end
        """
    )

    parser.add_argument('url', nargs='?', help='Target URL (http or https)')

    parser.add_argument(
        '--config',
        help='Path to a YAML configuration file'
    )

    parser.add_argument(
        '--depth',
        type=int,
        help='Maximum link depth to follow (default from config, 2)'
    )

    parser.add_argument(
        '--output',
        help='Directory the mirror is written to'
    )

    parser.add_argument(
        '--archive',
        help='Path of the zip archive to produce'
    )

    parser.add_argument(
        '--no-archive',
        action='store_true',
        help='Leave the mirror on disk without packaging it'
    )

    parser.add_argument(
        '--concurrency',
        type=int,
        help='Maximum number of concurrent requests'
    )

    parser.add_argument(
        '--insecure',
        action='store_true',
        help='Disable TLS certificate verification (self-signed targets)'
    )

    parser.add_argument(
        '--serve',
        action='store_true',
        help='Run the HTTP front end instead of a single clone'
    )

    parser.add_argument('--host', help='Host for --serve')
    parser.add_argument('--port', type=int, help='Port for --serve')

    parser.add_argument(
        '--version',
        action='version',
        version='Site Cloner 1.0.0'
    )

    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Command-line flags take precedence over the configuration file."""
    if args.depth is not None:
        config.crawler.max_depth = args.depth
    if args.concurrency is not None:
        if args.concurrency < 1:
            raise ValueError("--concurrency must be at least 1")
        config.crawler.max_concurrent_requests = args.concurrency
    if args.insecure:
        config.crawler.allow_insecure_ssl = True
    if args.output:
        config.output.directory = args.output
    if args.host:
        config.server.host = args.host
    if args.port is not None:
        config.server.port = args.port
    return config


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.config and not Path(args.config).exists():
        print(f"Error: Configuration file '{args.config}' not found.")
        return 1

    try:
        config = apply_overrides(load_config(args.config), args)
    except (ValueError, TypeError) as e:
        print(f"Error: invalid configuration: {e}")
        return 1

    setup_logging(config.logging)

    if args.serve:
        run_server(config)
        return 0

    if not args.url:
        parser.error("a target URL is required unless --serve is given")

    archive = None if args.no_archive else (args.archive or config.output.archive_name)

    app = ClonerApp(config)
    try:
        return asyncio.run(app.run(
            url=args.url,
            max_depth=config.crawler.max_depth,
            output_dir=config.output.directory,
            archive=archive
        ))
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1


if __name__ == '__main__':
    sys.exit(main())
