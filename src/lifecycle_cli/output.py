"""
CLI Output Formatting

Handles JSON and table output formats.
"""

import json
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List


def format_output(data: Any, format: str = "table") -> str:
    """
    Format data for output.

    Args:
        data: Data to format (dataclass, dict, list, etc.)
        format: Output format - table or json

    Returns:
        Formatted string
    """
    if format == "json":
        return format_json(data)

    return format_table(data)


def format_json(data: Any) -> str:
    """Format data as JSON."""
    def serialize(obj):
        if is_dataclass(obj):
            return asdict(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, (list, tuple)):
            return [serialize(item) for item in obj]
        if isinstance(obj, dict):
            return {k: serialize(v) for k, v in obj.items()}
        return obj

    return json.dumps(serialize(data), indent=2, default=str)


def format_table(data: Any) -> str:
    """
    Format data as human-readable table.

    Args:
        data: Data to format

    Returns:
        Table string
    """
    if data is None:
        return "No data"

    if is_dataclass(data):
        return format_dict_table(asdict(data))

    if isinstance(data, list):
        if not data:
            return "No results"
        if is_dataclass(data[0]) or isinstance(data[0], dict):
            return format_list_table(data)
        return "\n".join(str(item) for item in data)

    if isinstance(data, dict):
        return format_dict_table(data)

    return str(data)


def format_dict_table(data: Dict[str, Any]) -> str:
    """Format dictionary as key-value table, skipping empty values."""
    if not data:
        return "No data"

    lines = []
    max_key_width = max(len(str(k)) for k in data.keys())

    for key, value in data.items():
        if value is None:
            continue
        key_str = str(key).replace("_", " ").title()
        lines.append(f"{key_str.ljust(max_key_width + 2)}: {format_value(value)}")

    return "\n".join(lines)


def format_list_table(items: List[Any]) -> str:
    """
    Format list of dataclasses or dicts as table.

    Args:
        items: List of dataclass instances or dicts

    Returns:
        Table string
    """
    rows = [asdict(item) if is_dataclass(item) else item for item in items]
    headers = list(rows[0].keys())

    widths = {header: len(header) for header in headers}
    for row in rows:
        for header in headers:
            widths[header] = max(widths[header], len(format_value(row.get(header), short=True)))

    lines = []
    lines.append("  ".join(
        header.replace("_", " ").title().ljust(widths[header]) for header in headers
    ))
    lines.append("  ".join("-" * widths[h] for h in headers))

    for row in rows:
        lines.append("  ".join(
            format_value(row.get(header), short=True).ljust(widths[header])
            for header in headers
        ))

    return "\n".join(lines)


def format_value(value: Any, short: bool = False) -> str:
    """
    Format a single value for display.

    Args:
        value: Value to format
        short: Whether to use short format

    Returns:
        Formatted string
    """
    if value is None:
        return ""

    if isinstance(value, bool):
        return "Yes" if value else "No"

    if isinstance(value, datetime):
        if short:
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")

    if isinstance(value, list):
        if not value:
            return ""
        value = [format_value(v, short=True) if isinstance(v, dict) else str(v) for v in value]
        if short and len(value) > 2:
            return f"{value[0]}, ... ({len(value)} total)"
        return ", ".join(value)

    if isinstance(value, dict):
        # Item failures and similar records: show the name when there is one
        if short and "name" in value:
            return str(value["name"])
        if short:
            return f"({len(value)} items)"
        return ", ".join(f"{k}={v}" for k, v in value.items())

    return str(value)


def print_success(message: str) -> None:
    """Print success message."""
    print(f"SUCCESS: {message}")


def print_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"ERROR: {message}", file=sys.stderr)


def print_warning(message: str) -> None:
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def print_info(message: str) -> None:
    """Print info message."""
    print(f"INFO: {message}")


class OutputFormatter:
    """
    Formatted output for one CLI invocation.
    """

    def __init__(self, format: str = "table", quiet: bool = False):
        """
        Initialize formatter.

        Args:
            format: Output format (table, json)
            quiet: Suppress non-essential output
        """
        self.format = format
        self.quiet = quiet

    def output(self, data: Any) -> None:
        """Output formatted data."""
        print(format_output(data, self.format))

    def success(self, message: str) -> None:
        """Print success message."""
        if not self.quiet:
            print_success(message)

    def error(self, message: str) -> None:
        """Print error message."""
        print_error(message)

    def warning(self, message: str) -> None:
        """Print warning message."""
        print_warning(message)

    def info(self, message: str) -> None:
        """Print info message."""
        if not self.quiet:
            print_info(message)
