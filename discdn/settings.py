"""
Django settings for the DisCDN project.

Everything is read from the environment. The secrets listed under "Keyring"
are required; the app refuses to start without them.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value else default


def numbered_env(prefix):
    """Collects PREFIX_1, PREFIX_2, ... in numeric order."""
    numbered = []
    for name, value in os.environ.items():
        suffix = name[len(prefix):]
        if name.startswith(prefix) and suffix.isdigit() and value:
            numbered.append((int(suffix), value))
    return [value for _, value in sorted(numbered)]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-change-me')

DEBUG = env_bool('DJANGO_DEBUG')

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if host]

INSTALLED_APPS = [
    'apps.storage_providers',
    'apps.files',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'discdn.urls'

WSGI_APPLICATION = 'discdn.wsgi.application'

# Tokens carry all state; there is no database
DATABASES = {}

USE_TZ = True

# Uploads above this size are spooled to disk instead of memory
FILE_UPLOAD_MAX_MEMORY_SIZE = 2621440
DATA_UPLOAD_MAX_MEMORY_SIZE = None


# Keyring
DIGIT_KEY = os.environ.get('DIGIT_KEY', '')
CRYPTO_KEY = os.environ.get('CRYPTO_KEY', '')
DISCORD_TOKEN = os.environ.get('DISCORD_TOKEN', '')
IMG_SECRET = os.environ.get('IMG_SECRET', '')
DISCORD_WEBHOOK_URLS = numbered_env('DISCORD_WEBHOOK_URL_')


# Transfer
MAX_UPLOAD_SIZE = env_int('MAX_UPLOAD_SIZE', 10485760)  # 10MB
MAX_SEGMENT_SIZE = env_int('MAX_SEGMENT_SIZE', 9437184)  # 9MB
SEGMENT_WORKERS = env_int('SEGMENT_WORKERS', 1)
UPSTREAM_TIMEOUT = float(os.environ.get('UPSTREAM_TIMEOUT', '60'))
COMPACT_IDS = env_bool('COMPACT_IDS', default=True)
SCRAMBLE_IMAGES = env_bool('SCRAMBLE_IMAGES', default=True)
JPEG_QUALITY = env_int('JPEG_QUALITY', 95)


LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        # httpx logs every request URL at INFO, and webhook URLs carry tokens
        'httpx': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
