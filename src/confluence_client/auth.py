"""Authentication module for loading Confluence credentials.

This module loads Confluence connection settings from environment variables
using python-dotenv. Both Confluence Cloud (basic auth with an API token) and
self-hosted Data Center (personal access token as bearer) are supported.
Missing settings raise ConfigurationError before any request is made.
"""

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from .errors import ConfigurationError


AUTH_MODES = ('basic', 'bearer')
DEPLOYMENTS = ('auto', 'cloud', 'server')


class Credentials(NamedTuple):
    """Confluence connection settings."""
    url: str
    user: Optional[str] = None
    api_token: Optional[str] = None
    auth_mode: str = 'basic'
    bearer_token: Optional[str] = None
    deployment: str = 'auto'
    rest_root: Optional[str] = None


class Authenticator:
    """Loads and validates Confluence credentials from environment variables.

    Credentials are loaded from a .env file using python-dotenv and are never
    cached or logged.

    Environment variables:
        CONFLUENCE_URL: Instance URL (e.g., https://yourinstance.atlassian.net)
        CONFLUENCE_AUTH_MODE: "basic" (default) or "bearer"
        CONFLUENCE_USER: User email, required for basic auth
        CONFLUENCE_API_TOKEN: API token, required for basic auth
        CONFLUENCE_BEARER_TOKEN: Personal access token, required for bearer auth
        CONFLUENCE_DEPLOYMENT: "auto" (default), "cloud" or "server"
        CONFLUENCE_REST_ROOT: Optional REST root override (skips discovery)

    Example:
        >>> auth = Authenticator()
        >>> creds = auth.get_credentials()
        >>> print(f"Connecting to {creds.url}")
    """

    def __init__(self):
        """Initialize the authenticator by loading environment variables from .env file."""
        load_dotenv()

    def get_credentials(self) -> Credentials:
        """Get Confluence credentials from environment variables.

        Returns:
            Credentials: A named tuple with the connection settings

        Raises:
            ConfigurationError: If any required setting is missing or invalid
        """
        url = (os.getenv('CONFLUENCE_URL') or '').strip().rstrip('/')
        auth_mode = (os.getenv('CONFLUENCE_AUTH_MODE') or 'basic').strip().lower()
        deployment = (os.getenv('CONFLUENCE_DEPLOYMENT') or 'auto').strip().lower()
        user = os.getenv('CONFLUENCE_USER')
        api_token = os.getenv('CONFLUENCE_API_TOKEN')
        bearer_token = os.getenv('CONFLUENCE_BEARER_TOKEN')
        rest_root = (os.getenv('CONFLUENCE_REST_ROOT') or '').strip() or None

        missing = []
        if not url:
            missing.append('CONFLUENCE_URL')
        if auth_mode not in AUTH_MODES:
            missing.append(f'CONFLUENCE_AUTH_MODE (one of {", ".join(AUTH_MODES)})')
        elif auth_mode == 'basic':
            if not user:
                missing.append('CONFLUENCE_USER')
            if not api_token:
                missing.append('CONFLUENCE_API_TOKEN')
        elif not bearer_token:
            missing.append('CONFLUENCE_BEARER_TOKEN')
        if deployment not in DEPLOYMENTS:
            missing.append(f'CONFLUENCE_DEPLOYMENT (one of {", ".join(DEPLOYMENTS)})')

        if missing:
            raise ConfigurationError(missing)

        return Credentials(
            url=url,
            user=user,
            api_token=api_token,
            auth_mode=auth_mode,
            bearer_token=bearer_token,
            deployment=deployment,
            rest_root=rest_root,
        )
