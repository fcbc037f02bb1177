"""
WSGI config for the admitflow project.
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "admitflow.settings")
application = get_wsgi_application()
