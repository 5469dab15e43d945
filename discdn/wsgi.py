"""
WSGI config for the DisCDN project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'discdn.settings')

application = get_wsgi_application()
