from django.apps import AppConfig


class StorageProvidersConfig(AppConfig):
    name = 'apps.storage_providers'
    verbose_name = "Storage providers"
