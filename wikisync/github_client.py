"""Read-only GitHub REST API client for mirroring a repository tree."""

import base64
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .exceptions import ErrorCategory, RemoteError
from .models import EntryKind, TreeEntry

logger = logging.getLogger('wikisync.client')

DEFAULT_API_URL = 'https://api.github.com'
JSON_MEDIA_TYPE = 'application/vnd.github+json'
RAW_MEDIA_TYPE = 'application/vnd.github.raw+json'


def classify_status(response: requests.Response) -> ErrorCategory:
    """Map an HTTP error response onto an error category."""
    status = response.status_code
    if status == 404:
        return ErrorCategory.NOT_FOUND
    if status == 429:
        return ErrorCategory.RATE_LIMITED
    if status == 403:
        if response.headers.get('X-RateLimit-Remaining') == '0':
            return ErrorCategory.RATE_LIMITED
        return ErrorCategory.UNAUTHORIZED
    if status == 401:
        return ErrorCategory.UNAUTHORIZED
    if status >= 500:
        return ErrorCategory.TRANSIENT
    return ErrorCategory.UNKNOWN


class GitHubClient:
    """GitHub client exposing exactly the reads a tree mirror needs.

    No retries happen at this layer unless ``max_retries`` is raised; every
    failure surfaces as a RemoteError and callers decide what to do.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30,
        max_retries: int = 0,
        retry_backoff_factor: float = 2.0
    ):
        """
        Initialize the client with an authenticated session.

        Args:
            token: GitHub token with read access to the repository
            owner: Repository owner (user or organization)
            repo: Repository name
            api_url: Base URL of the GitHub API
            timeout: HTTP request timeout in seconds
            max_retries: Transport-level retries for 5xx responses (0 disables)
            retry_backoff_factor: Exponential backoff factor for retries
        """
        self.owner = owner
        self.repo = repo
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.request_count = 0

        self.session = requests.Session()
        self.session.headers['Authorization'] = f'Bearer {token}'
        self.session.headers['Accept'] = JSON_MEDIA_TYPE
        self.session.headers['X-GitHub-Api-Version'] = '2022-11-28'

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.info(f"Initialized GitHub client for {owner}/{repo} ({self.api_url})")
        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}")

    @property
    def repo_path(self) -> str:
        return f"/repos/{quote(self.owner)}/{quote(self.repo)}"

    def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        accept: Optional[str] = None
    ) -> requests.Response:
        """
        Issue a GET request and translate failures into RemoteError.

        Args:
            endpoint: API path beginning with '/'
            params: Query parameters
            accept: Optional Accept header override

        Returns:
            Successful response

        Raises:
            RemoteError: For transport failures and non-2xx responses
        """
        url = f"{self.api_url}{endpoint}"
        headers = {'Accept': accept} if accept else None

        start_time = time.time()
        logger.debug(f"API Request: GET {url}")
        self.request_count += 1

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error(f"Request timeout after {self.timeout}s: GET {url}")
            raise RemoteError(f"Request timed out: {url}", ErrorCategory.TRANSIENT, url=url) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: GET {url} - {str(e)}")
            raise RemoteError(f"Request failed: {url}: {e}", ErrorCategory.TRANSIENT, url=url) from e

        elapsed = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

        if response.status_code >= 400:
            category = classify_status(response)
            message = ''
            try:
                message = response.json().get('message', '')
            except ValueError:
                message = response.text[:200]
            logger.error(f"HTTP Error {response.status_code}: GET {url} {message}")
            raise RemoteError(
                f"GitHub API error for {endpoint}: {message or response.reason}",
                category,
                status=response.status_code,
                url=url
            )

        return response

    def _json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._make_request(endpoint, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(
                f"Invalid JSON from {endpoint}",
                ErrorCategory.UNKNOWN,
                status=response.status_code,
                url=response.url
            ) from e

    def default_ref(self) -> str:
        """Name of the repository's default branch."""
        data = self._json(self.repo_path)
        branch = data.get('default_branch')
        if not branch:
            raise RemoteError(f"Repository {self.owner}/{self.repo} reports no default branch")
        logger.info(f"Using branch: {branch}")
        return branch

    def head_content_hash(self, ref: str) -> str:
        """Commit SHA that ``ref`` currently points at."""
        data = self._json(f"{self.repo_path}/commits/{quote(ref, safe='')}")
        return data['sha']

    def tree(self, ref: str) -> List[TreeEntry]:
        """
        Fetch the full recursive tree at ``ref`` in a single request.

        Returns:
            TreeEntry list in the order GitHub returns it
        """
        data = self._json(
            f"{self.repo_path}/git/trees/{quote(ref, safe='')}",
            params={'recursive': '1'}
        )
        if data.get('truncated'):
            logger.warning(
                f"Tree listing for {self.owner}/{self.repo}@{ref} was truncated by GitHub; "
                "some files will not be synced"
            )

        entries = []
        for item in data.get('tree', []):
            if not item.get('path') or not item.get('sha'):
                continue
            kind = EntryKind.FILE if item.get('type') == 'blob' else EntryKind.OTHER
            entries.append(TreeEntry(path=item['path'], content_hash=item['sha'], kind=kind))

        logger.info(f"Fetched tree with {len(entries)} entries")
        return entries

    def blob(self, content_hash: str) -> bytes:
        """Bytes of the blob with the given SHA."""
        data = self._json(f"{self.repo_path}/git/blobs/{content_hash}")
        content = data.get('content', '')
        if data.get('encoding', 'base64') != 'base64':
            return content.encode('utf-8')
        return base64.b64decode(content)

    def file_at(self, path: str, ref: str) -> bytes:
        """Raw bytes of ``path`` as of ``ref``."""
        response = self._make_request(
            f"{self.repo_path}/contents/{quote(path)}",
            params={'ref': ref},
            accept=RAW_MEDIA_TYPE
        )
        return response.content

    def close(self) -> None:
        self.session.close()


__all__ = ['GitHubClient', 'classify_status', 'DEFAULT_API_URL']
