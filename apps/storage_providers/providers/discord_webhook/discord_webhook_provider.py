import httpx
import logging

from ..base import BaseUploadProvider
from ..discord.snowflake import encode_id
from apps.files.descriptors import Locator
from apps.files.exceptions import StorageUploadError

logger = logging.getLogger(__name__)

class DiscordWebhookStorageProvider(BaseUploadProvider):
    """
    The implementation of the upload side for Discord Webhooks.

    Each configured webhook is an independent upload endpoint with its own
    rate limits; the storage service spreads uploads across them.
    """

    def __init__(self, config, timeout=60.0, compact_ids=True):
        super().__init__(config, timeout=timeout)
        self.webhook_url = self.config.get('webhook_url')
        self.compact_ids = compact_ids

    def __repr__(self):
        # The webhook URL embeds its token, only show the webhook ID
        webhook_id = (self.webhook_url or '').rstrip('/').split('/')[-2:-1]
        return f"DiscordWebhookStorageProvider({webhook_id[0] if webhook_id else '?'})"

    def _encode(self, snowflake) -> str:
        return encode_id(snowflake) if self.compact_ids else str(snowflake)

    def upload_chunk(self, chunk: bytes, filename: str, content_type: str) -> Locator:
        """
        Implements the logic to upload a chunk as a webhook message attachment.
        - Posts the bytes as the single attachment of a new message.
        - Returns the Locator of the attachment: its channel ID, its
          attachment ID (the middle segment of the CDN path) and the
          filename Discord stored it under.

        Raises StorageUploadError on failure.
        """
        if not self.webhook_url:
            raise StorageUploadError("Webhook provider has no 'webhook_url' configured")

        logger.info(f"Starting upload to {self!r}: {filename}")
        logger.debug(f"Chunk size: {len(chunk)} bytes")

        url = f"{self.webhook_url}?wait=true"

        files = {
            'files[0]': (filename, chunk, content_type or 'application/octet-stream')
        }

        # Discord requires payload_json for message metadata
        data = {
            'payload_json': '{}'  # Empty JSON object
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                logger.debug("Sending POST request to Discord API...")
                response = client.post(url, files=files, data=data)

                if response.status_code == 200:
                    message = response.json()

                    attachments = message.get('attachments') or []
                    if not attachments:
                        logger.error("Discord API response has no attachments")
                        raise StorageUploadError("Discord API response has no attachments")
                    attachment = attachments[0]

                    if not message.get('channel_id') or not attachment.get('id'):
                        logger.error("Discord API response missing 'channel_id' or attachment 'id'")
                        raise StorageUploadError("Discord API response missing 'channel_id' or attachment 'id'")

                    locator = Locator(
                        channel_id=self._encode(message['channel_id']),
                        message_id=self._encode(attachment['id']),
                        content_name=attachment.get('filename') or filename,
                    )
                    logger.info(f"Upload successful. Message ID: {message.get('id')}")
                    return locator
                else:
                    reason = response.reason_phrase or response.text
                    logger.error(f"Upload failed with status {response.status_code}: {response.text}")
                    raise StorageUploadError(
                        f"Discord API error (status {response.status_code}): {reason}",
                        status=response.status_code,
                        reason=reason,
                    )

        except httpx.HTTPError as e:
            logger.exception(f"HTTP error during chunk upload: {e}")
            raise StorageUploadError(f"Network error uploading chunk: {str(e)}") from e
        except StorageUploadError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during chunk upload: {e}")
            raise StorageUploadError(f"Failed to upload chunk: {str(e)}") from e
