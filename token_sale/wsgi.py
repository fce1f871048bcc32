"""WSGI entry point (e.g. gunicorn token_sale.wsgi -b 0.0.0.0:$PORT)."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "token_sale.settings")

application = get_wsgi_application()
