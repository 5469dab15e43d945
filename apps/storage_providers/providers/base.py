from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from apps.files.descriptors import Locator


@dataclass(frozen=True)
class FetchedContent:
    """Bytes retrieved from the storage platform, with the headers it sent."""
    content: bytes
    content_type: Optional[str] = None
    content_length: Optional[int] = None


class BaseStorageProvider(ABC):
    """
    An abstract base class that all storage providers must implement.
    Providers are split by the credential they need: upload providers write
    new attachments, download providers turn locators back into bytes.
    """

    def __init__(self, config, timeout=60.0):
        """
        Initializes the provider with its configuration.
        """
        self.config = config
        self.timeout = timeout


class BaseUploadProvider(BaseStorageProvider):
    """
    Contract for providers that can store new attachments.
    """

    @abstractmethod
    def upload_chunk(self, chunk: bytes, filename: str, content_type: str) -> Locator:
        """
        Uploads a chunk of data (a whole file or one segment of it).

        Args:
            chunk: The bytes to upload.
            filename: The attachment name to store the bytes under.
            content_type: MIME type sent along with the bytes.
        Returns:
            The Locator of the stored attachment.
        """
        pass


class BaseDownloadProvider(BaseStorageProvider):
    """
    Contract for providers that can resolve and fetch stored attachments.
    """

    @abstractmethod
    def refresh_url(self, locator: Locator) -> str:
        """
        Exchanges a locator for a short-lived URL the bytes can be fetched from.
        """
        pass

    @abstractmethod
    def fetch(self, url: str) -> FetchedContent:
        """
        Downloads the bytes behind a URL returned by refresh_url().
        """
        pass

    def download_chunk(self, locator: Locator) -> FetchedContent:
        """
        Resolves and downloads one stored attachment.
        """
        return self.fetch(self.refresh_url(locator))
