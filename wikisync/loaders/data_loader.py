"""Structured data entries loaded from a repository directory."""

import fnmatch
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import yaml

from ..converters.markdown_reader import split_frontmatter
from ..exceptions import RemoteError, ValidationError
from ..logger import ProgressTracker

Parser = Callable[[str, str], Dict[str, Any]]


def _default_id(file_path: str) -> str:
    filename = file_path.rsplit('/', 1)[-1]
    stem = filename.rsplit('.', 1)[0] if '.' in filename else filename
    return stem or 'unknown'


def _with_id(data: Any, file_path: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(f"expected a mapping, got {type(data).__name__}", path=file_path)
    if not data.get('id'):
        data['id'] = _default_id(file_path)
    return data


def parse_json_file(content: str, file_path: str) -> Dict[str, Any]:
    """
    Parse a JSON object file.

    Raises:
        ValidationError: If the content is not a JSON object
    """
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ValidationError(f"invalid JSON: {e}", path=file_path) from e
    if isinstance(data, list):
        raise ValidationError("array JSON files are not supported, use a custom parser", path=file_path)
    return _with_id(data, file_path)


def parse_yaml_file(content: str, file_path: str) -> Dict[str, Any]:
    """
    Parse a YAML mapping file.

    Raises:
        ValidationError: If the content is not a YAML mapping
    """
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValidationError(f"invalid YAML: {e}", path=file_path) from e
    return _with_id(data, file_path)


def parse_markdown_file(content: str, file_path: str) -> Dict[str, Any]:
    """
    Parse a markdown file with YAML front matter.

    The front matter becomes the entry's fields and the markdown body is kept
    under ``content``.

    Raises:
        ValidationError: If the front matter is not a YAML mapping
    """
    raw, body = split_frontmatter(content)
    data: Any = {}
    if raw is not None:
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as e:
            raise ValidationError(f"invalid front matter: {e}", path=file_path) from e
    entry = _with_id(data, file_path)
    entry['content'] = body
    return entry


class GitHubDataLoader:
    """
    Loads data entries from every file under a repository directory.

    Malformed files and per-file fetch failures are logged and skipped;
    failing to resolve the ref or fetch the tree aborts the load.
    """

    def __init__(
        self,
        client,
        path: str,
        parser: Parser,
        ref: Optional[str] = None,
        pattern: str = '*',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the loader.

        Args:
            client: Remote tree client (``default_ref``, ``tree``, ``blob``)
            path: Repository directory holding the data files
            parser: Callable turning (content, path) into an entry dict
            ref: Branch or commit to read; the default branch when omitted
            pattern: fnmatch pattern applied to filenames
            logger: Logger instance
        """
        self.client = client
        self.path = path.strip('/')
        self.parser = parser
        self.ref = ref
        self.pattern = pattern
        self.logger = logger or logging.getLogger('wikisync.loaders.data')

        self.stats = {
            'files_found': 0,
            'entries_loaded': 0,
            'files_failed': 0
        }

    def load(self) -> List[Dict[str, Any]]:
        """
        Fetch and parse every matching file.

        Returns:
            Parsed entries in repository path order

        Raises:
            RemoteError: If the ref or tree cannot be fetched
        """
        ref = self.ref or self.client.default_ref()
        self.logger.info(f"Loading data from {self.path}/ at {ref}")

        prefix = f"{self.path}/"
        files = sorted(
            (
                entry for entry in self.client.tree(ref)
                if entry.is_file
                and entry.path.startswith(prefix)
                and fnmatch.fnmatch(entry.filename, self.pattern)
            ),
            key=lambda entry: entry.path
        )
        self.stats['files_found'] = len(files)
        self.logger.info(f"Found {len(files)} files matching pattern")

        entries = []
        with ProgressTracker(len(files), "data files", logger=self.logger) as tracker:
            for entry in files:
                try:
                    content = self.client.blob(entry.content_hash).decode('utf-8')
                    parsed = self.parser(content, entry.path)
                except (RemoteError, ValidationError, UnicodeDecodeError) as e:
                    self.logger.warning(f"Skipping {entry.path}: {e}")
                    self.stats['files_failed'] += 1
                    tracker.increment(success=False)
                    continue

                entries.append(parsed)
                self.stats['entries_loaded'] += 1
                tracker.increment(success=True)
                self.logger.debug(f"Parsed: {entry.path} -> {parsed['id']}")

        return entries

    def get_stats(self) -> Dict[str, int]:
        """Get loader statistics."""
        return self.stats.copy()


__all__ = [
    'GitHubDataLoader',
    'parse_json_file',
    'parse_yaml_file',
    'parse_markdown_file'
]
