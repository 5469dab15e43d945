import httpx
import logging

from ..base import BaseDownloadProvider, FetchedContent
from .snowflake import decode_id
from apps.files.descriptors import Locator
from apps.files.exceptions import StorageDownloadError

logger = logging.getLogger(__name__)

class DiscordStorageProvider(BaseDownloadProvider):
    """
    Resolves stored attachments through the Discord API.

    Attachment URLs on the Discord CDN are signed and expire, so every
    download first exchanges the permanent CDN path for a fresh URL using
    the attachments/refresh-urls endpoint, then fetches it.
    """

    cdn_base = "https://cdn.discordapp.com"
    api_base = "https://discord.com/api/v9"

    def __init__(self, config, timeout=60.0):
        super().__init__(config, timeout=timeout)
        self.bot_token = self.config.get('bot_token')

    def attachment_url(self, locator: Locator) -> str:
        channel_id = decode_id(locator.channel_id)
        attachment_id = decode_id(locator.message_id)
        return f"{self.cdn_base}/attachments/{channel_id}/{attachment_id}/{locator.content_name}"

    def refresh_url(self, locator: Locator) -> str:
        """
        Exchanges the permanent CDN path of an attachment for a signed URL.

        Raises StorageDownloadError with the upstream status on failure.
        """
        try:
            attachment_url = self.attachment_url(locator)
        except ValueError as e:
            raise StorageDownloadError(f"Invalid attachment locator: {e}", status=400) from e

        # The refresh endpoint takes the token as-is, without a "Bot " prefix
        headers = {
            "Authorization": self.bot_token,
            "Content-Type": "application/json"
        }
        url = f"{self.api_base}/attachments/refresh-urls"
        payload = {"attachment_urls": [attachment_url]}

        logger.info(f"Refreshing attachment URL for: {locator.content_name}")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload, headers=headers)

                if response.status_code == 200:
                    refreshed_urls = response.json().get('refreshed_urls') or []
                    if not refreshed_urls or not refreshed_urls[0].get('refreshed'):
                        logger.error(f"Refresh response contained no URL for {locator.content_name}")
                        raise StorageDownloadError("Discord API returned no refreshed URL")
                    logger.debug("Attachment URL refreshed")
                    return refreshed_urls[0]['refreshed']
                else:
                    reason = response.reason_phrase or response.text
                    logger.error(f"Failed to refresh URL. Status: {response.status_code}, Error: {response.text}")
                    raise StorageDownloadError(
                        f"Discord API error (status {response.status_code}): {reason}",
                        status=response.status_code,
                        reason=reason,
                    )

        except httpx.HTTPError as e:
            logger.exception(f"HTTP error while refreshing attachment URL: {e}")
            raise StorageDownloadError(f"Network error refreshing URL: {str(e)}") from e
        except StorageDownloadError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while refreshing attachment URL: {e}")
            raise StorageDownloadError(f"Failed to refresh URL: {str(e)}") from e

    def fetch(self, url: str) -> FetchedContent:
        """
        Downloads the attachment behind a refreshed URL.

        Raises StorageDownloadError with the upstream status on failure.
        """
        logger.info("Downloading attachment from the Discord CDN")

        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(url)

                if response.status_code == 200:
                    content = response.content
                    content_length = response.headers.get('content-length')
                    logger.info(f"Download successful. Size: {len(content)} bytes")
                    return FetchedContent(
                        content=content,
                        content_type=response.headers.get('content-type'),
                        content_length=int(content_length) if content_length and content_length.isdigit() else len(content),
                    )
                else:
                    reason = response.reason_phrase or response.text
                    logger.error(f"Failed to download attachment. Status: {response.status_code}, Error: {response.text}")
                    raise StorageDownloadError(
                        f"Failed to download attachment (status {response.status_code}): {reason}",
                        status=response.status_code,
                        reason=reason,
                    )

        except httpx.HTTPError as e:
            logger.exception(f"HTTP error during attachment download: {e}")
            raise StorageDownloadError(f"Network error downloading attachment: {str(e)}") from e
        except StorageDownloadError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during attachment download: {e}")
            raise StorageDownloadError(f"Failed to download attachment: {str(e)}") from e
