#!/usr/bin/env python3
"""
Module Audit - installed module version report.

Reads every module of an installation, resolves its installed version and
the latest stable version from the configured Composer repositories, and
flags outdated modules.

Usage:
    audit.py                       # Audit every in-scope module
    audit.py Vendor_Foo Vendor_Bar # Audit specific modules
    audit.py --outdated            # Only list modules with an update
    audit.py --json                # JSON output
"""

import argparse
import os
import sys

from module_audit.auditor import AuditContext, ModuleAuditor
from module_audit.config import load_config, validate_config
from module_audit.errors import AuditError
from module_audit.logging_config import setup_logging
from module_audit.render import print_failures, print_summary, render_table, report_to_json

# Configuration from environment
JSON_MODE = os.environ.get("MODULE_AUDIT_JSON", "0") == "1"


def cmd_audit(args: argparse.Namespace) -> int:
    """Audit modules and print the report."""
    try:
        config = load_config(args.config, verbose=args.verbose)
        config = config.with_overrides(root_dir=args.root, max_workers=args.workers)
    except ValueError as e:
        print(f"# {e}", file=sys.stderr)
        return 1

    for warning in validate_config(config):
        print(f"# Warning: {warning}", file=sys.stderr)

    try:
        context = AuditContext.from_config(config)
    except AuditError as e:
        print(f"# {e}", file=sys.stderr)
        return 1

    auditor = ModuleAuditor(context, max_workers=config.max_workers)
    report = auditor.audit_all(args.modules or None)
    if args.outdated:
        report.records = report.outdated

    if args.json or JSON_MODE:
        print(report_to_json(report))
    else:
        render_table(report.records)
        print_failures(report)
        print_summary(report)

    return 1 if report.failures else 0


def main() -> int:
    """Main entry point for the module audit."""
    parser = argparse.ArgumentParser(
        description="Module Audit - installed module versions vs. latest stable releases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--root",
        help="Installation root (default: root_dir from config or current directory)",
    )
    parser.add_argument(
        "--config",
        help="Configuration file (YAML or JSON)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON",
    )
    parser.add_argument(
        "--outdated",
        action="store_true",
        help="Only list modules with an available update",
    )
    parser.add_argument(
        "--workers",
        type=int,
        help="Number of modules audited in parallel",
    )
    parser.add_argument(
        "--log-file",
        help="Write a debug log to this file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "modules",
        nargs="*",
        help="Specific modules to audit",
    )

    args = parser.parse_args()

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    return cmd_audit(args)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
