"""
WSGI config for Hotel Self Check-In
"""

import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'checkin_project.settings')

application = get_wsgi_application()
