"""Unit tests for confluence_client.endpoint module."""

import pytest
import requests
from unittest.mock import Mock

from src.confluence_client.auth import Credentials
from src.confluence_client.endpoint import EndpointResolver, candidate_roots, is_cloud
from src.confluence_client.errors import DiscoveryError


def _response(status=200, content_type='application/json'):
    response = Mock()
    response.status_code = status
    response.headers = {'Content-Type': content_type}
    return response


def _creds(url, **kwargs):
    return Credentials(url=url, user='me@example.com', api_token='tok', **kwargs)


class TestCandidateRoots:
    """Test cases for REST root candidates."""

    def test_cloud_prefers_wiki(self):
        assert candidate_roots(_creds('https://x.atlassian.net')) == [
            'https://x.atlassian.net/wiki/rest/api',
            'https://x.atlassian.net/rest/api',
        ]

    def test_server_prefers_plain(self):
        assert candidate_roots(_creds('https://confluence.example.com')) == [
            'https://confluence.example.com/rest/api',
            'https://confluence.example.com/wiki/rest/api',
        ]

    def test_wiki_suffix_deduplicated(self):
        assert candidate_roots(_creds('https://x.atlassian.net/wiki/')) == [
            'https://x.atlassian.net/wiki/rest/api',
        ]

    def test_override(self):
        """An explicit REST root is the only candidate; relative ones join the URL."""
        creds = _creds('https://example.com', rest_root='/confluence/rest/api/')
        assert candidate_roots(creds) == ['https://example.com/confluence/rest/api']

        creds = _creds('https://example.com', rest_root='https://other.example.com/rest/api')
        assert candidate_roots(creds) == ['https://other.example.com/rest/api']

    def test_is_cloud(self):
        assert is_cloud(_creds('https://x.atlassian.net'))
        assert not is_cloud(_creds('https://x.atlassian.net', deployment='server'))
        assert is_cloud(_creds('https://wiki.example.com', deployment='cloud'))


class TestEndpointResolver:
    """Test cases for EndpointResolver.resolve()."""

    def test_first_answering_root_wins(self):
        session = Mock()
        session.get.side_effect = [_response(404), _response(200)]

        endpoint = EndpointResolver(session).resolve(_creds('https://x.atlassian.net'))

        assert endpoint.rest_root == 'https://x.atlassian.net/rest/api'
        assert endpoint.base_url == 'https://x.atlassian.net'
        assert endpoint.cloud is True
        assert session.get.call_args_list[0].args[0] == 'https://x.atlassian.net/wiki/rest/api/space'

    def test_basic_auth_probe(self):
        session = Mock()
        session.get.return_value = _response()

        EndpointResolver(session).resolve(_creds('https://x.atlassian.net'))

        kwargs = session.get.call_args.kwargs
        assert kwargs['auth'] == ('me@example.com', 'tok')
        assert kwargs['params'] == {'limit': 1}

    def test_bearer_probe(self):
        session = Mock()
        session.get.return_value = _response()
        creds = Credentials(url='https://c.example.com', auth_mode='bearer', bearer_token='pat')

        EndpointResolver(session).resolve(creds)

        kwargs = session.get.call_args.kwargs
        assert kwargs['auth'] is None
        assert kwargs['headers']['Authorization'] == 'Bearer pat'

    def test_html_answer_is_rejected(self):
        """A login page served as HTML does not count as a REST root."""
        session = Mock()
        session.get.side_effect = [_response(200, 'text/html'), _response(200)]

        endpoint = EndpointResolver(session).resolve(_creds('https://c.example.com'))

        assert endpoint.rest_root == 'https://c.example.com/wiki/rest/api'
        assert endpoint.base_url == 'https://c.example.com/wiki'

    def test_all_candidates_fail(self):
        session = Mock()
        session.get.side_effect = [
            requests.ConnectionError("refused"),
            _response(500),
        ]

        with pytest.raises(DiscoveryError) as exc_info:
            EndpointResolver(session).resolve(_creds('https://c.example.com'))

        assert len(exc_info.value.attempts) == 2
        assert 'https://c.example.com/rest/api (refused)' in str(exc_info.value)
        assert 'HTTP 500' in str(exc_info.value)
