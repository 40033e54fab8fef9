"""
CLI entry point for stateshift.

Usage:
    stateshift expand <file>             Print the expanded module
    stateshift expand <file> -o <out>    Write the expanded module to <out>
    stateshift expand <file> -i          Expand in place
    stateshift check <file> [--json]     Report diagnostics without writing
    stateshift registry <file>           List tracked types, markers and operations
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from stateshift import __version__
from stateshift.config import ExpanderConfig


def _load_config(args):
    return ExpanderConfig(Path(args.config) if args.config else None)


def _expand(args):
    from .expander import expand_file_recovering

    try:
        return expand_file_recovering(args.file, _load_config(args))
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return None


def _print_diagnostics(result):
    for diagnostic in result.diagnostics:
        print(diagnostic, file=sys.stderr)


def cmd_expand(args):
    """Expand a module."""
    result = _expand(args)
    if result is None:
        return 1

    _print_diagnostics(result)
    if not result.success:
        print(f"{len(result.errors)} error(s); nothing written", file=sys.stderr)
        return 1

    if args.inplace or args.output:
        target = args.file if args.inplace else args.output
        with open(target, 'w', encoding='utf-8') as f:
            f.write(result.source)
        print(f"Expanded: {args.file} -> {target}", file=sys.stderr)
    else:
        sys.stdout.write(result.source)

    return 0


def cmd_check(args):
    """Report diagnostics for a module."""
    result = _expand(args)
    if result is None:
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_diagnostics(result)
        if result.success:
            print(f"{args.file}: {len(result.types)} tracked type(s), no errors")
        else:
            print(f"{args.file}: {len(result.errors)} error(s), {len(result.warnings)} warning(s)")

    return 0 if result.success else 1


def cmd_registry(args):
    """List tracked types, markers and operations."""
    result = _expand(args)
    if result is None:
        return 1

    _print_diagnostics(result)
    for expansion in result.types:
        tracked = expansion.tracked
        print(f"{tracked.name} ({tracked.slots} slot(s), defaults: {', '.join(tracked.defaults)})")
        print(f"  capability: {expansion.registry.capability_name}")
        print(f"  markers: {', '.join(expansion.registry.marker_names)}")
        for operation in expansion.operations:
            requires = ", ".join(b.name for b in operation.bindings)
            returns = ", ".join(b.name for b in operation.output)
            print(f"  {operation.name}: [{requires}] -> [{returns}]")
        for name in expansion.failed:
            print(f"  {name}: dropped")

    return 0 if result.success else 1


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='stateshift',
        description="Compile-time state overlays for Python classes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    stateshift expand builders.py -o builders_expanded.py
    stateshift check builders.py --json
    stateshift registry builders.py
"""
    )
    parser.add_argument('--version', action='version', version=f'stateshift {__version__}')
    parser.add_argument('--config', help='Path to a stateshift.yaml config file')
    parser.add_argument('-v', '--verbose', action='count', default=0, help='More logging (-vv for debug)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # expand
    expand_p = subparsers.add_parser('expand', help='Expand a module')
    expand_p.add_argument('file', help='File to expand')
    target = expand_p.add_mutually_exclusive_group()
    target.add_argument('-o', '--output', help='Write the expansion to this file')
    target.add_argument('-i', '--inplace', action='store_true', help='Modify in place')
    expand_p.set_defaults(func=cmd_expand)

    # check
    check_p = subparsers.add_parser('check', help='Report diagnostics')
    check_p.add_argument('file', help='File to check')
    check_p.add_argument('--json', action='store_true', help='Machine-readable output')
    check_p.set_defaults(func=cmd_check)

    # registry
    registry_p = subparsers.add_parser('registry', help='List tracked types and operations')
    registry_p.add_argument('file', help='File to inspect')
    registry_p.set_defaults(func=cmd_registry)

    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
