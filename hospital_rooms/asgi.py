"""
ASGI config for the hospital_rooms project.

HTTP only; the ward API has no WebSocket routes.
"""
import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "hospital_rooms.settings")

application = get_asgi_application()
