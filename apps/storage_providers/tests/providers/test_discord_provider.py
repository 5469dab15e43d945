"""
Unit tests for the Discord download provider.

These tests mock HTTP calls to the Discord API using unittest.mock.
"""
import pytest
from unittest.mock import Mock, patch
import httpx
from apps.storage_providers.providers.discord.discord_provider import DiscordStorageProvider
from apps.storage_providers.providers.discord.snowflake import encode_id
from apps.files.descriptors import Locator
from apps.files.exceptions import StorageDownloadError


def make_response(status_code, json_data=None, content=b'', headers=None, reason_phrase='', text=''):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = json_data or {}
    response.content = content
    response.headers = headers or {}
    response.reason_phrase = reason_phrase
    response.text = text
    return response


@pytest.fixture
def provider(mock_discord_config):
    return DiscordStorageProvider(mock_discord_config, timeout=5.0)


@pytest.mark.unit
class TestDiscordProviderInitialization:
    """Test Discord provider initialization."""

    def test_init_with_valid_config(self, mock_discord_config):
        """Test initializing the provider with valid config."""
        provider = DiscordStorageProvider(mock_discord_config)

        assert provider.bot_token == mock_discord_config['bot_token']
        assert provider.api_base == "https://discord.com/api/v9"
        assert provider.config == mock_discord_config

    def test_attachment_url_from_plain_ids(self, provider):
        url = provider.attachment_url(Locator('111', '222', 'a.png'))

        assert url == "https://cdn.discordapp.com/attachments/111/222/a.png"

    def test_attachment_url_from_compact_ids(self, provider):
        """Test that Base62 locators are expanded back to snowflakes."""
        locator = Locator(encode_id('123456789012345678'), encode_id('987654321098765432'), 'a.png')

        url = provider.attachment_url(locator)

        assert url == "https://cdn.discordapp.com/attachments/123456789012345678/987654321098765432/a.png"


@pytest.mark.unit
class TestDiscordProviderRefresh:
    """Test exchanging locators for signed URLs."""

    def test_refresh_url_success(self, provider, mock_discord_config):
        """Test the refresh request shape and the returned URL."""
        mock_response = make_response(200, json_data={
            'refreshed_urls': [{
                'original': 'https://cdn.discordapp.com/attachments/1/2/a.png',
                'refreshed': 'https://cdn.discordapp.com/attachments/1/2/a.png?ex=1&is=2&hm=3',
            }]
        })

        with patch('httpx.Client.post', return_value=mock_response) as mock_post:
            url = provider.refresh_url(Locator('1', '2', 'a.png'))

        assert url.endswith('?ex=1&is=2&hm=3')
        args, kwargs = mock_post.call_args
        assert args[0] == "https://discord.com/api/v9/attachments/refresh-urls"
        assert kwargs['json'] == {'attachment_urls': ['https://cdn.discordapp.com/attachments/1/2/a.png']}
        # Raw token, no "Bot " prefix
        assert kwargs['headers']['Authorization'] == mock_discord_config['bot_token']

    def test_refresh_url_upstream_error_keeps_status(self, provider):
        mock_response = make_response(401, reason_phrase='Unauthorized', text='{"message": "401: Unauthorized"}')

        with patch('httpx.Client.post', return_value=mock_response):
            with pytest.raises(StorageDownloadError) as exc_info:
                provider.refresh_url(Locator('1', '2', 'a.png'))

        assert exc_info.value.status == 401
        assert exc_info.value.status_code == 401
        assert exc_info.value.reason == 'Unauthorized'

    def test_refresh_url_empty_response(self, provider):
        with patch('httpx.Client.post', return_value=make_response(200, json_data={'refreshed_urls': []})):
            with pytest.raises(StorageDownloadError, match='no refreshed URL'):
                provider.refresh_url(Locator('1', '2', 'a.png'))

    def test_refresh_url_network_error(self, provider):
        """Test that transport failures become a 502."""
        with patch('httpx.Client.post', side_effect=httpx.ConnectError('Connection refused')):
            with pytest.raises(StorageDownloadError, match='Network error') as exc_info:
                provider.refresh_url(Locator('1', '2', 'a.png'))

        assert exc_info.value.status_code == 502

    def test_refresh_url_invalid_locator(self, provider):
        """Test that an undecodable ID is reported before any request."""
        with patch('httpx.Client.post') as mock_post:
            with pytest.raises(StorageDownloadError) as exc_info:
                provider.refresh_url(Locator('not-base62!', '2', 'a.png'))

        mock_post.assert_not_called()
        assert exc_info.value.status_code == 400


@pytest.mark.unit
class TestDiscordProviderFetch:
    """Test downloading refreshed URLs."""

    def test_fetch_success(self, provider):
        mock_response = make_response(
            200, content=b'png-bytes', headers={'content-type': 'image/png', 'content-length': '9'}
        )

        with patch('httpx.Client.get', return_value=mock_response):
            result = provider.fetch('https://cdn.discordapp.com/attachments/1/2/a.png?ex=1')

        assert result.content == b'png-bytes'
        assert result.content_type == 'image/png'
        assert result.content_length == 9

    def test_fetch_without_content_length(self, provider):
        with patch('httpx.Client.get', return_value=make_response(200, content=b'abc')):
            result = provider.fetch('https://cdn.discordapp.com/x')

        assert result.content_length == 3
        assert result.content_type is None

    def test_fetch_not_found(self, provider):
        mock_response = make_response(404, reason_phrase='Not Found')

        with patch('httpx.Client.get', return_value=mock_response):
            with pytest.raises(StorageDownloadError) as exc_info:
                provider.fetch('https://cdn.discordapp.com/x')

        assert exc_info.value.status_code == 404

    def test_fetch_timeout(self, provider):
        with patch('httpx.Client.get', side_effect=httpx.ReadTimeout('timed out')):
            with pytest.raises(StorageDownloadError, match='Network error'):
                provider.fetch('https://cdn.discordapp.com/x')

    def test_download_chunk_refreshes_then_fetches(self, provider):
        """Test the two-step download of one attachment."""
        refreshed = 'https://cdn.discordapp.com/attachments/1/2/a.bin?ex=1'
        refresh_response = make_response(200, json_data={'refreshed_urls': [{'refreshed': refreshed}]})
        fetch_response = make_response(200, content=b'data', headers={'content-type': 'application/octet-stream'})

        with patch('httpx.Client.post', return_value=refresh_response), \
                patch('httpx.Client.get', return_value=fetch_response) as mock_get:
            result = provider.download_chunk(Locator('1', '2', 'a.bin'))

        mock_get.assert_called_once_with(refreshed)
        assert result.content == b'data'
