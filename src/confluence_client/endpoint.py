"""REST API root discovery for Confluence Cloud and self-hosted instances.

Cloud sites serve the REST API under ``/wiki/rest/api`` while Server and
Data Center installs usually serve it under ``/rest/api`` (or below a
context path). The root is probed once per run and the result is carried
around as an immutable ResolvedEndpoint value.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import requests

from .auth import Credentials
from .errors import DiscoveryError

logger = logging.getLogger(__name__)

REST_SUFFIX = '/rest/api'
PROBE_TIMEOUT = 15


@dataclass(frozen=True)
class ResolvedEndpoint:
    """The REST root that answered for this run.

    Attributes:
        base_url: URL the atlassian client is built on (rest_root minus /rest/api)
        rest_root: Full REST API root, e.g. https://x.atlassian.net/wiki/rest/api
        cloud: Whether the instance is Confluence Cloud
    """
    base_url: str
    rest_root: str
    cloud: bool


def is_cloud(credentials: Credentials) -> bool:
    """Tell whether the credentials point at Confluence Cloud."""
    if credentials.deployment == 'cloud':
        return True
    if credentials.deployment == 'server':
        return False
    return 'atlassian.net' in credentials.url.lower()


def candidate_roots(credentials: Credentials) -> List[str]:
    """List the REST roots to try, most likely first.

    Args:
        credentials: Connection settings

    Returns:
        Ordered, de-duplicated list of REST root URLs
    """
    if credentials.rest_root:
        override = credentials.rest_root.rstrip('/')
        if not override.startswith('http'):
            override = credentials.url.rstrip('/') + '/' + override.lstrip('/')
        return [override]

    base = credentials.url.rstrip('/')
    wiki_root = base + REST_SUFFIX if base.endswith('/wiki') else base + '/wiki' + REST_SUFFIX
    plain_root = base + REST_SUFFIX

    if is_cloud(credentials):
        candidates = [wiki_root, plain_root]
    else:
        candidates = [plain_root, wiki_root]

    ordered = []
    for candidate in candidates:
        if candidate not in ordered:
            ordered.append(candidate)
    return ordered


class EndpointResolver:
    """Probes candidate REST roots and returns the first one that answers.

    Example:
        >>> endpoint = EndpointResolver().resolve(Authenticator().get_credentials())
        >>> endpoint.rest_root
        'https://example.atlassian.net/wiki/rest/api'
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or requests.Session()

    def _auth_headers(self, credentials: Credentials) -> dict:
        headers = {'Accept': 'application/json'}
        if credentials.auth_mode == 'bearer':
            headers['Authorization'] = f"Bearer {credentials.bearer_token}"
        return headers

    def _probe(self, root: str, credentials: Credentials) -> None:
        auth = None
        if credentials.auth_mode == 'basic':
            auth = (credentials.user, credentials.api_token)
        response = self._session.get(
            f"{root}/space",
            params={'limit': 1},
            headers=self._auth_headers(credentials),
            auth=auth,
            timeout=PROBE_TIMEOUT,
        )
        if response.status_code != 200:
            raise requests.HTTPError(f"HTTP {response.status_code}", response=response)
        content_type = response.headers.get('Content-Type', '')
        if 'json' not in content_type:
            raise requests.HTTPError(f"unexpected content type '{content_type}'")

    def resolve(self, credentials: Credentials) -> ResolvedEndpoint:
        """Find the REST root for the configured instance.

        Args:
            credentials: Connection settings

        Returns:
            ResolvedEndpoint for the first candidate that answered

        Raises:
            DiscoveryError: If every candidate failed; lists each attempt
        """
        attempts = []
        for root in candidate_roots(credentials):
            try:
                self._probe(root, credentials)
            except requests.RequestException as e:
                logger.debug(f"REST root probe failed for {root}: {e}")
                attempts.append(f"{root} ({e})")
                continue

            logger.info(f"Using Confluence REST root {root}")
            base_url = root[:-len(REST_SUFFIX)] if root.endswith(REST_SUFFIX) else root
            return ResolvedEndpoint(
                base_url=base_url,
                rest_root=root,
                cloud=is_cloud(credentials),
            )

        raise DiscoveryError(attempts)
