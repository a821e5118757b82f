"""API wrapper for the Confluence REST API.

This module wraps the atlassian-python-api Confluence client and provides
error translation from HTTP exceptions to our typed exception hierarchy.
It integrates with the retry logic for handling rate limits and exposes
exactly the page, label and attachment operations the publisher needs.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from atlassian import Confluence
from requests.exceptions import Timeout, ConnectionError

from src.models.confluence_page import ConfluencePage
from .auth import Authenticator, Credentials
from .endpoint import EndpointResolver, ResolvedEndpoint
from .errors import (
    InvalidCredentialsError,
    PageNotFoundError,
    APIUnreachableError,
    APIAccessError,
)
from .retry_logic import RETRYABLE_STATUS_CODES, retry_on_rate_limit

logger = logging.getLogger(__name__)

PAGE_EXPAND = "space,body.storage,version,ancestors,metadata.labels"


class APIWrapper:
    """Wrapper around atlassian-python-api Confluence client with error translation.

    This class:
    1. Loads credentials with the Authenticator
    2. Resolves the REST root once (unless an endpoint is passed in)
    3. Translates HTTP errors to typed exceptions
    4. Retries throttled requests

    Example:
        >>> api = APIWrapper(Authenticator())
        >>> page = api.get_page("123456")
        >>> page.title
        'Home'
    """

    def __init__(
        self,
        authenticator: Authenticator,
        endpoint: Optional[ResolvedEndpoint] = None,
        resolver: Optional[EndpointResolver] = None,
    ):
        """Initialize the API wrapper.

        Args:
            authenticator: Authenticator instance for loading credentials
            endpoint: Already resolved REST endpoint, skips discovery
            resolver: Resolver used when no endpoint is given
        """
        self._authenticator = authenticator
        self._endpoint = endpoint
        self._resolver = resolver
        self._credentials: Optional[Credentials] = None
        self._client: Optional[Confluence] = None

    @property
    def credentials(self) -> Credentials:
        if self._credentials is None:
            self._credentials = self._authenticator.get_credentials()
        return self._credentials

    def discover(self) -> ResolvedEndpoint:
        """Resolve (once) and return the REST endpoint for this wrapper.

        Raises:
            ConfigurationError: If credentials are missing
            DiscoveryError: If no REST root answered
        """
        if self._endpoint is None:
            resolver = self._resolver or EndpointResolver()
            self._endpoint = resolver.resolve(self.credentials)
        return self._endpoint

    def _get_client(self) -> Confluence:
        """Get or lazily create the Confluence API client."""
        if self._client is None:
            creds = self.credentials
            endpoint = self.discover()
            if creds.auth_mode == 'bearer':
                self._client = Confluence(
                    url=endpoint.base_url,
                    token=creds.bearer_token,
                    cloud=endpoint.cloud,
                    timeout=30,
                )
            else:
                self._client = Confluence(
                    url=endpoint.base_url,
                    username=creds.user,
                    password=creds.api_token,
                    cloud=endpoint.cloud,
                    timeout=30,
                )
        return self._client

    @property
    def base_url(self) -> str:
        return self.discover().base_url

    def _validate_page_id(self, page_id: str) -> None:
        """Reject page IDs that are not purely numeric.

        Raises:
            ValueError: If page_id is empty or not numeric
        """
        if not page_id or not str(page_id).strip():
            raise ValueError("page_id cannot be empty")
        if not re.match(r'^\d+$', str(page_id).strip()):
            raise ValueError(
                f"Invalid page_id format: '{page_id}'. "
                f"Page IDs must contain only numeric characters."
            )

    def _sanitize_credentials(self, text: str) -> str:
        """Mask secrets in error messages before they reach the logs.

        Example:
            >>> api._sanitize_credentials("Bearer abc.def failed")
            'Bearer ***REDACTED*** failed'
        """
        if not text:
            return text

        sanitized = re.sub(r'://([\w.-]+):([\w.-]+)@', r'://***:***@', text)
        sanitized = re.sub(
            r'Authorization:\s*[^\n\r]+',
            'Authorization: ***REDACTED***',
            sanitized,
            flags=re.IGNORECASE,
        )
        sanitized = re.sub(
            r'Bearer\s+[^\s]+', 'Bearer ***REDACTED***', sanitized, flags=re.IGNORECASE
        )
        sanitized = re.sub(
            r'(password|api_?token|token)["\']?\s*[:=]\s*["\']?([^"\'\s&]+)',
            r'\1=***REDACTED***',
            sanitized,
            flags=re.IGNORECASE,
        )
        sanitized = re.sub(
            r'\b[\w.-]+@([\w.-]+\.[a-z]{2,})\b', r'***@\1', sanitized, flags=re.IGNORECASE
        )
        return sanitized

    @staticmethod
    def _status_code(exception: Exception) -> Optional[int]:
        status = getattr(exception, 'status_code', None)
        if not isinstance(status, int):
            response = getattr(exception, 'response', None)
            status = getattr(response, 'status_code', None)
        return status if isinstance(status, int) else None

    def _translate_error(self, exception: Exception, operation: str, page_id: str = "unknown") -> Exception:
        """Translate HTTP exceptions to typed Confluence exceptions.

        Args:
            exception: The original exception from the API client
            operation: Description of the operation that failed
            page_id: Page the operation targeted, used for PageNotFoundError

        Returns:
            Exception: One of our typed exceptions
        """
        endpoint = self._endpoint.rest_root if self._endpoint else self.credentials.url

        if isinstance(exception, (Timeout, ConnectionError)):
            return APIUnreachableError(endpoint=endpoint)

        status = self._status_code(exception)
        error_msg = str(exception).lower()

        if status == 401 or (status is None and ('401' in error_msg or 'unauthorized' in error_msg)):
            return InvalidCredentialsError(
                user=self.credentials.user or 'bearer-token',
                endpoint=endpoint,
            )

        if status == 404 or (status is None and (
            '404' in error_msg or 'not found' in error_msg or 'no content' in error_msg
        )):
            return PageNotFoundError(page_id=page_id)

        safe_error_msg = self._sanitize_credentials(str(exception))
        logger.error(f"API operation failed: {operation} - {safe_error_msg}")
        if status is not None:
            return APIAccessError(f"Confluence API failure during {operation}: HTTP {status}")
        return APIAccessError(f"Confluence API failure during {operation}: {safe_error_msg}")

    def _call(self, operation: str, func, page_id: str = "unknown"):
        def _run():
            try:
                return func(self._get_client())
            except (InvalidCredentialsError, PageNotFoundError, APIUnreachableError, APIAccessError):
                raise
            except Exception as e:
                if self._status_code(e) in RETRYABLE_STATUS_CODES:
                    raise
                raise self._translate_error(e, operation, page_id) from e

        return retry_on_rate_limit(_run)

    def get_page(self, page_id: str) -> ConfluencePage:
        """Fetch a page with body, version, ancestors and labels.

        Raises:
            PageNotFoundError: If page doesn't exist
            InvalidCredentialsError: If credentials are invalid
            APIUnreachableError: If API is unreachable
            APIAccessError: For any other failure
        """
        self._validate_page_id(page_id)
        data = self._call(
            f"get_page({page_id})",
            lambda client: client.get_page_by_id(page_id=page_id, expand=PAGE_EXPAND),
            page_id=page_id,
        )
        if not data:
            raise PageNotFoundError(page_id=page_id)
        return ConfluencePage.from_api(data, self.base_url)

    def find_page_by_title(self, space: str, title: str) -> Optional[ConfluencePage]:
        """Look up a page by exact title within a space.

        Returns:
            The page, or None when no page has that title
        """
        def _fetch(client):
            try:
                return client.get_page_by_title(space=space, title=title, expand=PAGE_EXPAND)
            except Exception as e:
                if self._status_code(e) == 404:
                    return None
                raise

        data = self._call(f"find_page_by_title({space}, {title})", _fetch)
        if not data:
            return None
        return ConfluencePage.from_api(data, self.base_url)

    def create_page(
        self,
        space: str,
        title: str,
        body: str,
        parent_id: Optional[str] = None,
    ) -> ConfluencePage:
        """Create a page in storage representation."""
        data = self._call(
            f"create_page({space}, {title})",
            lambda client: client.create_page(
                space=space,
                title=title,
                body=body,
                parent_id=parent_id,
                representation='storage',
            ),
        )
        return ConfluencePage.from_api(data or {}, self.base_url)

    def update_page(self, page_id: str, title: str, body: str) -> ConfluencePage:
        """Replace a page's title and body; the client bumps the version."""
        self._validate_page_id(page_id)

        def _update(client):
            try:
                return client.update_page(
                    page_id=page_id,
                    title=title,
                    body=body,
                    representation='storage',
                )
            except Exception as e:
                if self._status_code(e) == 409 or 'conflict' in str(e).lower():
                    raise APIAccessError(f"Version conflict updating page {page_id}") from e
                raise

        data = self._call(f"update_page({page_id})", _update, page_id=page_id)
        return ConfluencePage.from_api(data or {'id': page_id, 'title': title}, self.base_url)

    def get_labels(self, page_id: str) -> List[str]:
        self._validate_page_id(page_id)
        data = self._call(
            f"get_labels({page_id})",
            lambda client: client.get_page_labels(page_id),
            page_id=page_id,
        )
        return [label['name'] for label in (data or {}).get('results', []) if label.get('name')]

    def add_labels(self, page_id: str, names: Iterable[str]) -> None:
        self._validate_page_id(page_id)
        for name in names:
            self._call(
                f"add_label({page_id}, {name})",
                lambda client, label=name: client.set_page_label(page_id, label),
                page_id=page_id,
            )

    def remove_labels(self, page_id: str, names: Iterable[str]) -> None:
        self._validate_page_id(page_id)
        for name in names:
            self._call(
                f"remove_label({page_id}, {name})",
                lambda client, label=name: client.remove_page_label(page_id, label),
                page_id=page_id,
            )

    def get_attachment(self, page_id: str, filename: str) -> Optional[Dict[str, Any]]:
        """Return the attachment metadata for filename on a page, if any."""
        self._validate_page_id(page_id)
        data = self._call(
            f"get_attachment({page_id}, {filename})",
            lambda client: client.get_attachments_from_content(
                page_id, filename=filename, expand='version'
            ),
            page_id=page_id,
        )
        for attachment in (data or {}).get('results', []):
            if attachment.get('title') == filename:
                return attachment
        return None

    def upload_attachment(self, page_id: str, filename: str, data: bytes, content_type: str) -> None:
        """Upload (or add a new version of) an attachment."""
        self._validate_page_id(page_id)
        self._call(
            f"upload_attachment({page_id}, {filename})",
            lambda client: client.attach_content(
                data,
                name=filename,
                content_type=content_type,
                page_id=page_id,
            ),
            page_id=page_id,
        )

    def download_attachment(self, attachment: Dict[str, Any]) -> bytes:
        """Download an attachment's current bytes via its _links.download path."""
        download = (attachment.get('_links') or {}).get('download')
        if not download:
            raise APIAccessError(f"Attachment {attachment.get('title')} has no download link")
        return self._call(
            f"download_attachment({attachment.get('title')})",
            lambda client: client.get(download.lstrip('/'), not_json_response=True),
        )
