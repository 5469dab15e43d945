"""
Shared pytest fixtures for the DisCDN project.
"""
import io
import itertools
import threading

import pytest
from unittest.mock import Mock
from PIL import Image

from apps.files.descriptors import Locator
from apps.files.keyring import Keyring
from apps.storage_providers.providers.base import FetchedContent


@pytest.fixture
def keyring():
    """Returns a keyring with placeholder secrets."""
    return Keyring(
        signing_key='test-digit-key',
        encryption_key='test-crypto-key',
        discord_token='test_bot_token_123456',
        image_secret='test-image-secret',
        webhook_urls=(
            'https://discord.com/api/webhooks/111111111111111111/webhook-token-one',
            'https://discord.com/api/webhooks/222222222222222222/webhook-token-two',
        ),
    )


@pytest.fixture
def mock_discord_config(keyring):
    """Returns a mock Discord provider configuration."""
    return {
        'bot_token': keyring.discord_token,
        'webhook_urls': list(keyring.webhook_urls),
    }


@pytest.fixture
def webhook_config():
    """Returns the configuration of a single webhook upload provider."""
    return {
        'webhook_url': 'https://discord.com/api/webhooks/111111111111111111/webhook-token-one',
    }


def build_image(width, height, image_format='PNG', mode='RGB'):
    """
    Builds an image where every pixel differs from its neighbours, so any
    block moving around changes the pixel data.
    """
    image = Image.new(mode, (width, height))
    if mode == 'RGB':
        image.putdata([
            ((x * 7) % 256, (y * 13) % 256, (x * y + x + y) % 256)
            for y in range(height) for x in range(width)
        ])
    else:
        image.putdata([(x * 7 + y * 13) % 256 for y in range(height) for x in range(width)])
    output = io.BytesIO()
    image.save(output, format=image_format)
    return output.getvalue()


@pytest.fixture
def make_image():
    """Returns a builder for encoded test images."""
    return build_image


@pytest.fixture
def png_bytes():
    """Returns a 10x10 PNG image."""
    return build_image(10, 10)


@pytest.fixture
def sample_file_data():
    """Returns sample binary file data for testing."""
    return bytes(range(256)) * 10


class MemoryStorageService:
    """
    Stand-in for StorageService that keeps uploaded chunks in memory.
    Uploads are recorded in call order in `uploads`.
    """

    def __init__(self):
        self._chunks = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.uploads = []

    def upload_chunk(self, chunk, filename, content_type):
        with self._lock:
            message_id = str(next(self._ids))
            self._chunks[message_id] = bytes(chunk)
            self.uploads.append((filename, len(chunk), content_type))
        return Locator(channel_id='chan', message_id=message_id, content_name=filename)

    def download_chunk(self, locator):
        content = self._chunks[locator.message_id]
        return FetchedContent(content=content, content_type='application/octet-stream', content_length=len(content))


@pytest.fixture
def memory_storage():
    """Returns an in-memory storage service."""
    return MemoryStorageService()


@pytest.fixture
def mock_storage_service():
    """Returns a mock StorageService for testing without actual uploads."""
    mock_service = Mock()
    mock_service.upload_chunk.return_value = Locator('1', '2', 'a.bin')
    mock_service.download_chunk.return_value = FetchedContent(
        content=b'stored_data',
        content_type='application/octet-stream',
        content_length=11,
    )
    return mock_service
