import logging
import random

from django.conf import settings

from apps.storage_providers.providers import DiscordStorageProvider, DiscordWebhookStorageProvider
from apps.storage_providers.providers.base import FetchedContent
from apps.files.descriptors import Locator
from apps.files.exceptions import StorageUploadError, StorageDownloadError

logger = logging.getLogger(__name__)

class StorageService:
    """
    A service that abstracts the interaction with the storage providers.

    Downloads go through a single download provider. Uploads go to one of
    several interchangeable upload providers, picked uniformly at random per
    call so the load spreads across their independent quotas.
    """

    def __init__(self, download_provider, upload_providers, chooser=None):
        """
        Args:
            download_provider: Provider used to refresh and fetch attachments
            upload_providers: Non-empty list of interchangeable upload providers
            chooser: Callable picking one provider from a list (random.choice by default)
        """
        if download_provider is None:
            raise ValueError("download_provider is required")
        if not upload_providers:
            raise ValueError("At least one upload provider is required")

        self.download_provider = download_provider
        self.upload_providers = list(upload_providers)
        self._choose = chooser or random.choice

    @classmethod
    def from_keyring(cls, keyring):
        """
        Builds the Discord-backed storage service from the process keyring.
        """
        timeout = settings.UPSTREAM_TIMEOUT
        download_provider = DiscordStorageProvider(
            {'bot_token': keyring.discord_token},
            timeout=timeout,
        )
        upload_providers = [
            DiscordWebhookStorageProvider(
                {'webhook_url': webhook_url},
                timeout=timeout,
                compact_ids=settings.COMPACT_IDS,
            )
            for webhook_url in keyring.webhook_urls
        ]
        return cls(download_provider, upload_providers)

    def upload_chunk(self, chunk, filename, content_type):
        """
        Uploads bytes to a randomly chosen upload provider.
        Returns the Locator of the stored attachment.
        """
        if not chunk:
            raise ValueError("chunk cannot be empty")

        provider = self._choose(self.upload_providers)
        logger.debug(f"Selected upload provider {provider!r} for {filename}")

        try:
            result = provider.upload_chunk(chunk, filename, content_type)

            if not isinstance(result, Locator):
                raise StorageUploadError(f"Provider returned invalid type: {type(result)}")
            return result

        except StorageUploadError:
            raise
        except Exception as e:
            raise StorageUploadError(f"Failed to upload chunk: {str(e)}") from e

    def download_chunk(self, locator):
        """
        Resolves a locator to a fresh URL and downloads its bytes.
        """
        if not isinstance(locator, Locator):
            raise ValueError("locator must be a Locator")

        try:
            result = self.download_provider.download_chunk(locator)

            if not isinstance(result, FetchedContent):
                raise StorageDownloadError(f"Provider returned invalid type: {type(result)}")
            return result

        except StorageDownloadError:
            raise
        except Exception as e:
            raise StorageDownloadError(f"Failed to download chunk: {str(e)}") from e
