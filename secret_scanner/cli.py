"""
Command line interface: `secret-scanner scan|init|validate`.
"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from secret_scanner import __version__
from secret_scanner.config import (
    CONFIG_FILE_NAME,
    LOG_FORMAT,
    OUTPUT_FORMAT,
    ScanConfiguration,
    load_config_file,
    write_default_config,
)
from secret_scanner.errors import ConfigurationError, InvalidSignature, ScanPathNotFound
from secret_scanner.log import setup_logging
from secret_scanner.models import (
    SEVERITY_LEVELS,
    ScanStats,
    build_summary,
    filter_by_severity,
)
from secret_scanner.patterns import SignatureCatalog, load_custom_signatures
from secret_scanner.report import REPORT_MODES, format_report, write_report
from secret_scanner.walker import scan_path

logger = logging.getLogger(__name__)

# Findings at or above this severity make `scan` exit non-zero
FAILING_SEVERITY = "high"


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for all subcommands."""
    parser = argparse.ArgumentParser(
        prog='secret-scanner',
        description='Semantic credential scanner for JavaScript/TypeScript codebases',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
ENVIRONMENT VARIABLES (Optional):
  MAX_CONCURRENT_FILES        Files analyzed in parallel (default: 5)
  SCAN_TIMEOUT_MS             Per-file analysis timeout in ms (default: 5000)
  MAX_FILE_SIZE_MB            Skip files larger than this in MB (default: 10)
  MIN_ENTROPY_THRESHOLD       Entropy floor for entropy-validated signatures (default: 3.5)
  ENABLE_STRUCTURAL_ANALYSIS  Parse scripts into syntax trees (default: true)
  OUTPUT_FORMAT               console|json|markdown|sarif (default: console)
  LOG_FORMAT                  text|json (default: text)

USAGE EXAMPLES:
  secret-scanner scan -p ./src
  secret-scanner scan -p . -f sarif -o results.sarif
  secret-scanner scan -p . -s high --custom-patterns patterns.json
  secret-scanner init
  secret-scanner validate -c .secret-scanner.json

EXIT CODES:
  0   No high or critical findings
  1   High/critical findings, or a fatal error (missing path, bad config)
  130 Interrupted by user (Ctrl+C)
        '''
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    subparsers = parser.add_subparsers(dest='command')

    # scan
    scan = subparsers.add_parser('scan', help='Scan a file or directory for credentials')
    scan.add_argument('-p', '--path', default='.', help='File or directory to scan (default: .)')
    scan.add_argument('-i', '--include', action='append', metavar='GLOB',
                      help='Include glob (repeatable; replaces the configured includes)')
    scan.add_argument('-e', '--exclude', action='append', metavar='GLOB',
                      help='Additional exclude glob (repeatable)')
    scan.add_argument('-f', '--format', choices=REPORT_MODES, default=OUTPUT_FORMAT,
                      help=f'Report format (default: {OUTPUT_FORMAT})')
    scan.add_argument('-o', '--output', metavar='FILE', help='Write the report to FILE instead of stdout')
    scan.add_argument('-s', '--severity', choices=SEVERITY_LEVELS, default='medium',
                      help='Minimum severity to report (default: medium)')
    scan.add_argument('-c', '--config', metavar='FILE',
                      help=f'Configuration file (default: ./{CONFIG_FILE_NAME} if present)')
    scan.add_argument('--custom-patterns', metavar='FILE', help='Custom signatures JSON file')
    scan.add_argument('--no-crypto-filter', action='store_true', help='Disable the crypto-context filter')
    scan.add_argument('--no-ui-filter', action='store_true', help='Disable the UI-prop filter')
    scan.add_argument('--no-i18n-filter', action='store_true', help='Disable the i18n filter')
    scan.add_argument('--no-config-filter', action='store_true', help='Disable the config-file filter')
    scan.add_argument('--no-structural', action='store_true',
                      help='Disable syntax-tree analysis (pattern scan only)')
    scan.add_argument('--timeout', type=int, metavar='MS', help='Per-file analysis timeout in milliseconds')
    scan.add_argument('--concurrency', type=int, help='Files analyzed in parallel')
    scan.add_argument('--stats', action='store_true', help='Print scan statistics to stderr')
    scan.add_argument('--log-format', choices=['text', 'json'], default=LOG_FORMAT,
                      help=f'Logging format (default: {LOG_FORMAT})')
    scan.add_argument('-v', '--verbose', action='store_true', help='Enable verbose debug logging')

    # init
    init = subparsers.add_parser('init', help=f'Write a default {CONFIG_FILE_NAME}')
    init.add_argument('--path', default=CONFIG_FILE_NAME, help=f'Target file (default: {CONFIG_FILE_NAME})')
    init.add_argument('-f', '--force', action='store_true', help='Overwrite an existing file')

    # validate
    validate = subparsers.add_parser('validate', help='Validate a configuration file')
    validate.add_argument('-c', '--config', default=CONFIG_FILE_NAME,
                          help=f'Configuration file (default: {CONFIG_FILE_NAME})')

    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_configuration(args: argparse.Namespace) -> ScanConfiguration:
    """
    Combine the configuration file (if any) with CLI overrides.

    Raises:
        ConfigurationError: bad config file or override values
    """
    if args.config:
        config = load_config_file(Path(args.config))
    elif Path(CONFIG_FILE_NAME).is_file():
        config = load_config_file(Path(CONFIG_FILE_NAME))
    else:
        config = ScanConfiguration()

    exclude = tuple(config.exclude) + tuple(args.exclude or ())
    return config.with_overrides(
        include=args.include,
        exclude=exclude,
        enable_structural_analysis=False if args.no_structural else None,
        timeout=args.timeout / 1000.0 if args.timeout is not None else None,
        concurrency=args.concurrency,
        show_progress=sys.stderr.isatty(),
        crypto_filter=False if args.no_crypto_filter else None,
        ui_filter=False if args.no_ui_filter else None,
        i18n_filter=False if args.no_i18n_filter else None,
        config_filter=False if args.no_config_filter else None,
    ).validate()


def run_scan(args: argparse.Namespace) -> int:
    config = build_configuration(args)

    catalog = SignatureCatalog()
    if args.custom_patterns:
        load_custom_signatures(args.custom_patterns, catalog)

    scan_root = Path(args.path).expanduser()
    logger.info("=" * 70)
    logger.info("CREDENTIAL SCANNER")
    logger.info("=" * 70)
    logger.info(f"Scan path: {scan_root}")
    logger.info(f"Concurrency: {config.concurrency}, timeout: {config.timeout:.1f}s")
    logger.info(f"Structural analysis: {config.enable_structural_analysis}")
    logger.info(f"Output format: {args.format}")
    logger.info("=" * 70)

    stats = ScanStats()
    findings = asyncio.run(scan_path(scan_root, config, catalog=catalog, stats=stats))
    findings = filter_by_severity(findings, args.severity)
    summary = build_summary(findings, stats)

    report = format_report(findings, args.format, summary)
    if args.output:
        write_report(report, Path(args.output))
    else:
        print(report)

    if args.stats:
        print(json.dumps(summary.to_dict(), indent=2), file=sys.stderr)

    blocking = filter_by_severity(findings, FAILING_SEVERITY)
    if blocking:
        logger.warning(f"{len(blocking)} high or critical finding(s) detected")
        return 1
    return 0


def run_init(args: argparse.Namespace) -> int:
    path = write_default_config(Path(args.path), force=args.force)
    print(f"Created {path}")
    return 0


def run_validate(args: argparse.Namespace) -> int:
    config = load_config_file(Path(args.config))
    print(f"{args.config} is valid ({len(config.include)} include, {len(config.exclude)} exclude patterns)")
    return 0


# ===================================================================
# MAIN ENTRY POINT
# ===================================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point with validation and error handling."""
    args = parse_arguments(argv)

    setup_logging(getattr(args, 'log_format', LOG_FORMAT), getattr(args, 'verbose', False))

    commands = {
        'scan': run_scan,
        'init': run_init,
        'validate': run_validate,
    }
    if args.command not in commands:
        build_parser().print_help(sys.stderr)
        return 1

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        logger.warning("Scan interrupted by user")
        return 130
    except ScanPathNotFound as e:
        logger.error(str(e))
        return 1
    except (ConfigurationError, InvalidSignature) as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
