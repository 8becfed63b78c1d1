"""
Command-line interface for querybuilder.

Converts filters between their JSON tree form and the textual expression
form, and validates them against a field catalog.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .. import __version__
from ..core.errors import ExpressionSyntaxError, QueryBuilderError
from ..core.expression import parse, serialize, serialize_rule
from ..core.models import RuleGroup
from ..core.rule_tree import RuleTree
from ..core.validation import is_valid, validate
from ..infrastructure.catalog_loader import CatalogError, load_field_catalog
from ..infrastructure.logging_config import get_logger, setup_logging
from ..infrastructure.presets import PresetError, delete_preset, list_presets, load_preset


logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="querybuilder",
        description="Convert and validate boolean filter expressions"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"querybuilder {__version__}"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Format command
    format_parser = subparsers.add_parser("format", help="Print the expression of a JSON filter tree")
    format_parser.add_argument("tree", help="Path to a JSON filter tree, or - for stdin")

    # Parse command
    parse_parser = subparsers.add_parser("parse", help="Print the JSON filter tree of an expression")
    parse_parser.add_argument("expression", help="Filter expression, or - for stdin")
    parse_parser.add_argument("--indent", type=int, default=2, help="JSON indentation")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a filter against a field catalog")
    source = validate_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--expression", help="Filter expression")
    source.add_argument("--tree", help="Path to a JSON filter tree, or - for stdin")
    validate_parser.add_argument("--fields", type=Path, required=True, help="Path to the field catalog")
    validate_parser.add_argument("--exempt", nargs="+", default=[], help="Fields that always validate")

    # Presets command
    presets_parser = subparsers.add_parser("presets", help="Manage saved filter presets")
    presets_sub = presets_parser.add_subparsers(dest="preset_command")
    presets_sub.add_parser("list", help="List saved presets")
    show_parser = presets_sub.add_parser("show", help="Print the expression of a preset")
    show_parser.add_argument("name", help="Preset name")
    delete_parser = presets_sub.add_parser("delete", help="Delete a preset")
    delete_parser.add_argument("name", help="Preset name")

    return parser


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding='utf-8')


def _read_tree(source: str) -> Optional[RuleGroup]:
    """Load a JSON filter tree, logging why when it cannot be read."""
    try:
        return RuleGroup.from_dict(json.loads(_read_source(source)))
    except OSError as e:
        logger.error(f"Cannot read filter tree {source}: {e}")
    except json.JSONDecodeError as e:
        logger.error(f"Filter tree {source} is not valid JSON: {e}")
    except (AttributeError, TypeError, ValueError) as e:
        logger.error(f"Filter tree {source} is malformed: {e}")
    return None


def cmd_format(args: argparse.Namespace) -> int:
    """
    Print the textual expression of a JSON filter tree.

    Returns:
        Exit code (0 for success).
    """
    tree = _read_tree(args.tree)
    if tree is None:
        return 1
    try:
        print(serialize(tree))
    except QueryBuilderError as e:
        logger.error(f"Cannot format filter: {e}")
        return 1
    return 0


def cmd_parse(args: argparse.Namespace) -> int:
    """
    Print the JSON filter tree of a textual expression.

    Returns:
        Exit code (0 for success, 2 if the expression does not parse).
    """
    text = sys.stdin.read() if args.expression == "-" else args.expression
    try:
        tree = parse(text)
    except ExpressionSyntaxError as e:
        print(f"Syntax error: {e}", file=sys.stderr)
        return 2
    print(json.dumps(tree.to_dict(), indent=args.indent, ensure_ascii=False))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """
    Validate every rule of a filter against a field catalog.

    Returns:
        Exit code (0 if valid, 1 if any rule is invalid, 2 on unreadable input).
    """
    try:
        catalog = load_field_catalog(args.fields)
    except (OSError, CatalogError):
        return 2

    if args.expression is not None:
        try:
            root = parse(args.expression)
        except ExpressionSyntaxError as e:
            print(f"Syntax error: {e}", file=sys.stderr)
            return 2
    else:
        root = _read_tree(args.tree)
        if root is None:
            return 2

    tree = RuleTree(catalog, root=root)
    results = validate(tree.root, tree.fields, args.exempt)

    for rule in tree.iter_rules():
        result = results[rule.id]
        try:
            text = serialize_rule(rule)
        except QueryBuilderError:
            text = f"{rule.field} {rule.operator} {rule.value!r}"
        if result.valid:
            print(f"✓ {text}")
        else:
            print(f"✗ {text}: {', '.join(result.reasons)}")

    if is_valid(results):
        print(f"Filter is valid ({len(results)} rules)")
        return 0
    invalid = sum(1 for r in results.values() if not r.valid)
    print(f"Filter is invalid ({invalid} of {len(results)} rules)")
    return 1


def cmd_presets(args: argparse.Namespace) -> int:
    """
    List, show or delete saved presets.

    Returns:
        Exit code (0 for success).
    """
    if args.preset_command == "show":
        try:
            print(serialize(load_preset(args.name)))
        except QueryBuilderError as e:
            logger.error(str(e))
            return 1
        return 0

    if args.preset_command == "delete":
        try:
            deleted = delete_preset(args.name)
        except PresetError as e:
            logger.error(str(e))
            return 1
        if not deleted:
            logger.error(f"No preset named {args.name!r}")
            return 1
        print(f"Deleted preset {args.name!r}")
        return 0

    for name in list_presets():
        print(name)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Console logging only
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    setup_logging(level=log_level, log_to_file=False)

    # Dispatch to command handler
    if args.command == "format":
        return cmd_format(args)
    elif args.command == "parse":
        return cmd_parse(args)
    elif args.command == "validate":
        return cmd_validate(args)
    elif args.command == "presets":
        return cmd_presets(args)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
