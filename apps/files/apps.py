from django.apps import AppConfig


class FilesConfig(AppConfig):
    name = 'apps.files'
    verbose_name = "Files"

    def ready(self):
        # Missing secrets are a startup error, not a per-request one
        from .keyring import get_keyring
        get_keyring()
