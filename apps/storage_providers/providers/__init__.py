from .base import BaseStorageProvider, BaseUploadProvider, BaseDownloadProvider, FetchedContent
from .discord.discord_provider import DiscordStorageProvider
from .discord_webhook.discord_webhook_provider import DiscordWebhookStorageProvider

__all__ = [
    'BaseStorageProvider',
    'BaseUploadProvider',
    'BaseDownloadProvider',
    'FetchedContent',
    'DiscordStorageProvider',
    'DiscordWebhookStorageProvider',
]
