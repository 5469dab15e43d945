import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from apps.storage_providers.providers.discord.discord_validator import DiscordConfigValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Keyring:
    """
    Process-wide secrets. Built once at startup and passed into the services
    that need them; never mutated afterwards.
    """
    signing_key: str
    encryption_key: str
    discord_token: str
    image_secret: str
    webhook_urls: Tuple[str, ...]

    def __repr__(self):
        return f"Keyring(webhook_urls={len(self.webhook_urls)})"

    @property
    def discord_config(self) -> dict:
        return {
            'bot_token': self.discord_token,
            'webhook_urls': list(self.webhook_urls),
            'max_upload_size': settings.MAX_UPLOAD_SIZE,
            'max_segment_size': settings.MAX_SEGMENT_SIZE,
        }

    @classmethod
    def from_settings(cls, config=None) -> "Keyring":
        """
        Builds the keyring from Django settings.

        Raises ImproperlyConfigured listing every missing secret at once.
        """
        config = config or settings
        required = {
            'DIGIT_KEY': getattr(config, 'DIGIT_KEY', ''),
            'CRYPTO_KEY': getattr(config, 'CRYPTO_KEY', ''),
            'DISCORD_TOKEN': getattr(config, 'DISCORD_TOKEN', ''),
            'IMG_SECRET': getattr(config, 'IMG_SECRET', ''),
        }
        errors = [f"{name} is not set." for name, value in required.items() if not value]

        webhook_urls = tuple(url for url in getattr(config, 'DISCORD_WEBHOOK_URLS', ()) if url)
        if not webhook_urls:
            errors.append("DISCORD_WEBHOOK_URL_1 is not set.")

        if errors:
            raise ImproperlyConfigured("\n" + "\n".join(errors))

        keyring = cls(
            signing_key=required['DIGIT_KEY'],
            encryption_key=required['CRYPTO_KEY'],
            discord_token=required['DISCORD_TOKEN'],
            image_secret=required['IMG_SECRET'],
            webhook_urls=webhook_urls,
        )

        validator = DiscordConfigValidator(keyring.discord_config)
        if not validator.validate():
            raise ImproperlyConfigured(validator.get_validation_report())

        logger.info(f"Keyring loaded with {len(webhook_urls)} upload endpoint(s)")
        return keyring


@lru_cache(maxsize=1)
def get_keyring() -> Keyring:
    """Returns the process-wide keyring, loading it on first use."""
    return Keyring.from_settings()
