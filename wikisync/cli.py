#!/usr/bin/env python3
"""
Command-line interface for syncing an Obsidian wiki from GitHub.

Usage:
    wikisync sync --config wikisync.yaml
    wikisync render docs/page.md --output page.md
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import yaml

from . import __version__
from .config_loader import ConfigLoader, build_settings, get_nested
from .converters import rewrite_markdown
from .exceptions import ConfigurationError, RemoteError, WikiSyncError
from .logger import log_config, setup_logging
from .orchestrator import SyncOrchestrator

DEFAULT_CONFIG_PATH = 'wikisync.yaml'


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='wikisync',
        description="Mirror an Obsidian wiki from a GitHub repository into a static site",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync using wikisync.yaml (or built-in defaults) and GITHUB_TOKEN
  wikisync sync

  # Sync a specific branch with debug logging
  wikisync sync --ref develop -vv

  # Dev server start: skipped unless only_on_build is disabled
  wikisync sync --command dev

  # Rewrite wikilinks and callouts of one document
  wikisync render src/content/docs/page.md --output page.md
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    subparsers = parser.add_subparsers(dest='subcommand', required=True)

    sync_parser = subparsers.add_parser('sync', help='Synchronize wiki content and attachments')
    sync_parser.add_argument(
        '--config',
        type=str,
        default=None,
        help=f'Path to configuration YAML file (default: {DEFAULT_CONFIG_PATH} if present)'
    )
    sync_parser.add_argument(
        '--command',
        choices=['build', 'dev', 'preview'],
        default='build',
        help='Site command this sync runs for; non-build commands skip by default (default: build)'
    )
    sync_parser.add_argument(
        '--skip',
        action='store_true',
        help='Skip the sync entirely and leave the local mirror untouched'
    )
    sync_parser.add_argument(
        '--ref',
        type=str,
        help='Branch, tag or commit to sync (default: repository default branch)'
    )
    sync_parser.add_argument(
        '--cache-path',
        type=str,
        help='Location of the sync cache document'
    )
    sync_parser.add_argument(
        '--attachments-dir',
        type=str,
        help='Directory attachments are written to'
    )
    sync_parser.add_argument(
        '--continue-on-error',
        action='store_true',
        help='Skip documents that cannot be fetched instead of aborting'
    )
    sync_parser.add_argument(
        '--no-progress',
        action='store_true',
        help='Disable progress bars'
    )
    sync_parser.add_argument(
        '--report',
        type=str,
        help='Write the sync report as JSON to this file'
    )
    _add_logging_arguments(sync_parser)

    render_parser = subparsers.add_parser('render', help='Rewrite wikilinks and callouts in a markdown file')
    render_parser.add_argument('file', type=str, help='Markdown file to rewrite')
    render_parser.add_argument(
        '--output', '-o',
        type=str,
        help='Output file (default: stdout)'
    )
    _add_logging_arguments(render_parser)

    return parser


def _add_logging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v INFO, -vv DEBUG)'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )


def load_config(args: argparse.Namespace) -> dict:
    """Load file or default configuration, then apply environment and CLI overrides."""
    config_path = args.config
    if config_path is None and os.path.exists(DEFAULT_CONFIG_PATH):
        config_path = DEFAULT_CONFIG_PATH

    config = ConfigLoader.load(config_path) if config_path else ConfigLoader.default()
    config = ConfigLoader.apply_env_overrides(config)
    return ConfigLoader.merge_with_args(config, args)


def run_sync(args: argparse.Namespace) -> int:
    config = load_config(args)

    setup_logging(
        verbosity=args.verbose,
        log_file=get_nested(config, 'logging.file'),
        level=get_nested(config, 'logging.level')
    )
    logger = logging.getLogger('wikisync.cli')

    ConfigLoader.validate(config, require_token=False)
    log_config(config)

    settings = build_settings(config)
    report = SyncOrchestrator(settings, command=args.command).run()

    print(report.format_console_report())
    if args.report:
        report.export_json(args.report, logger=logger)
    return 0


def run_render(args: argparse.Namespace) -> int:
    setup_logging(verbosity=args.verbose, log_file=args.log_file)

    with open(args.file, 'r', encoding='utf-8') as f:
        text = f.read()

    output = rewrite_markdown(text)

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            f.write(output)
    else:
        sys.stdout.write(output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        if args.subcommand == 'render':
            return run_render(args)
        return run_sync(args)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 1
    except RemoteError as e:
        print(f"ERROR: {e}\n{e.hint()}", file=sys.stderr)
        return 1
    except (ConfigurationError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1
    except (WikiSyncError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nSync interrupted by user", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
