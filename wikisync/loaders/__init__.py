"""Loaders for structured data kept in the synced repository."""

from .data_loader import GitHubDataLoader, parse_json_file, parse_markdown_file, parse_yaml_file

__all__ = [
    'GitHubDataLoader',
    'parse_json_file',
    'parse_markdown_file',
    'parse_yaml_file'
]
