"""
Output format utilities for limedev CLI commands.

Formats the per-repository records the commands emit as JSONL (default),
a JSON array, YAML or TSV.
"""

import csv
import io
import json
import os
from typing import Any, Dict, Iterator, List, Optional

import yaml

FORMATS = ('jsonl', 'json', 'yaml', 'tsv')


def format_output(data: Iterator[Dict[str, Any]], format: str,
                  fields: Optional[List[str]] = None) -> Iterator[str]:
    """
    Format records according to the requested format.

    Args:
        data: Iterator of dictionaries to format
        format: Output format (jsonl, json, yaml, tsv)
        fields: Columns to include (tsv only)

    Yields:
        Formatted strings for output
    """
    if format == "jsonl":
        for item in data:
            yield json.dumps(item, ensure_ascii=False)
    elif format == "json":
        yield json.dumps(list(data), ensure_ascii=False, indent=2)
    elif format == "yaml":
        yield yaml.safe_dump(list(data), default_flow_style=False,
                             allow_unicode=True, sort_keys=False).rstrip('\n')
    elif format == "tsv":
        yield from format_tsv(data, fields)
    else:
        raise ValueError(f"Unknown format: {format}")


def format_tsv(data: Iterator[Dict[str, Any]], fields: Optional[List[str]] = None) -> Iterator[str]:
    """Format records as tab-separated values with a header row."""
    rows = [flatten_dict(item) for item in data]
    if not rows:
        return

    if fields is None:
        fields = []
        for row in rows:
            fields.extend(key for key in row if key not in fields)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fields, delimiter='\t',
                            extrasaction='ignore', lineterminator='\n')
    writer.writeheader()
    writer.writerows(rows)
    yield output.getvalue().rstrip('\n')


def flatten_dict(d: Dict[str, Any], parent_key: str = '', sep: str = '.') -> Dict[str, Any]:
    """
    Flatten a nested dictionary.

    Example:
        {'remotes': {'origin': 'u'}} -> {'remotes.origin': 'u'}
    """
    items: Dict[str, Any] = {}
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.update(flatten_dict(v, new_key, sep=sep))
        elif isinstance(v, list):
            items[new_key] = ', '.join(str(item) for item in v)
        else:
            items[new_key] = v
    return items


def get_format_from_env(default: str = 'jsonl') -> str:
    """Output format from LIME_FORMAT, falling back to ``default``."""
    format = os.environ.get('LIME_FORMAT', default).lower()
    if format not in FORMATS:
        return default
    return format
