import io
import logging
from dataclasses import dataclass, replace

from django.conf import settings

from apps.files.descriptors import ContentDescriptor
from apps.files.services.obfuscation_service import ObfuscationService, is_supported_image
from apps.files.services.segment_service import SegmentService
from apps.files.services.storage_service import StorageService
from apps.files.services.token_service import TokenService

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = 'application/octet-stream'


@dataclass(frozen=True)
class RetrievedContent:
    content: bytes
    content_type: str
    filename: str
    expires: bool = False


class FileService:
    """
    Orchestrates storing content behind a token and resolving tokens back to
    content, by coordinating the token, storage, segment and obfuscation
    services. Primary service layer for the views.
    """

    def __init__(self, keyring, storage_service=None, token_service=None,
                 segment_service=None, obfuscation_service=None):
        if keyring is None:
            raise ValueError("keyring is required")

        if not storage_service:
            logger.debug("No StorageService provided, building one from the keyring")
            storage_service = StorageService.from_keyring(keyring)
        self._storage_service = storage_service

        if not token_service:
            token_service = TokenService(keyring)
        self._token_service = token_service

        if not segment_service:
            segment_service = SegmentService(
                storage_service,
                max_segment_size=settings.MAX_SEGMENT_SIZE,
                max_workers=settings.SEGMENT_WORKERS,
            )
        self._segment_service = segment_service

        if not obfuscation_service:
            obfuscation_service = ObfuscationService(keyring.image_secret, jpeg_quality=settings.JPEG_QUALITY)
        self._obfuscation_service = obfuscation_service

        self.max_upload_size = settings.MAX_UPLOAD_SIZE
        self.scramble_images = settings.SCRAMBLE_IMAGES

    def issue_token(self, payload):
        """Validates an issuance request and returns its SignedToken."""
        return self._token_service.issue(payload)

    def scramble(self, image_bytes, content_type):
        return self._obfuscation_service.scramble(image_bytes, content_type)

    def store(self, file_stream, filename, content_type, size, expired_at=None):
        """
        Orchestrates: (scramble) -> single or segmented upload -> descriptor -> token
        """
        content_type = content_type or DEFAULT_CONTENT_TYPE
        self._token_service.check_expiry_format(expired_at)
        logger.info(f"Starting store: {filename} ({size} bytes, {content_type})")

        scrambled = False
        if self.scramble_images and is_supported_image(content_type):
            if size > self.max_upload_size:
                logger.info(f"Image {filename} is too large to scramble, storing it as-is")
            else:
                image_bytes = self._obfuscation_service.scramble(file_stream.read(), content_type)
                file_stream = io.BytesIO(image_bytes)
                size = len(image_bytes)
                scrambled = True
                logger.debug(f"Scrambled image {filename}")

        base = ContentDescriptor(
            content_type=content_type,
            original_file_name=filename,
            expired_at=expired_at,
            scrambled=scrambled,
        )

        if size > self.max_upload_size:
            segments = self._segment_service.upload(file_stream, size, filename)
            descriptor = base.with_segments(segments)
        else:
            locator = self._storage_service.upload_chunk(file_stream.read(), filename, content_type)
            descriptor = replace(
                base,
                channel_id=locator.channel_id,
                message_id=locator.message_id,
                content_name=locator.content_name,
            )

        token = self._token_service.encode(descriptor)
        logger.info(f"Stored {filename} ({len(descriptor.segments) or 1} upload(s))")
        return token

    def retrieve(self, digit, encrypted):
        """
        Orchestrates: decode token -> fetch (one or many segments) -> (restore)
        """
        descriptor = self._token_service.decode(digit, encrypted)
        logger.info(f"Retrieving content: {descriptor.display_name}")

        if descriptor.is_segmented:
            content = self._segment_service.download(descriptor.segments)
            content_type = descriptor.content_type
        else:
            fetched = self._storage_service.download_chunk(descriptor.locator)
            content = fetched.content
            content_type = fetched.content_type or descriptor.content_type

        content_type = content_type or DEFAULT_CONTENT_TYPE

        if descriptor.scrambled:
            # The upstream may label the bytes differently; the descriptor
            # records the type they were scrambled as
            scrambled_type = descriptor.content_type or content_type
            content = self._obfuscation_service.restore(content, scrambled_type)
            content_type = scrambled_type

        return RetrievedContent(
            content=content,
            content_type=content_type,
            filename=descriptor.display_name,
            expires=descriptor.expired_at is not None,
        )
