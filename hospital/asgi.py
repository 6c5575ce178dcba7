"""
ASGI config for the clinic scheduling project.

The API is plain request/response, so the stock Django ASGI handler is
all that is served here.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital.settings")

application = get_asgi_application()
