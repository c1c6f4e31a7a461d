"""
Django settings for the Hotel Self Check-In application
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-in-production')

DEBUG = os.environ.get('DEBUG', '0').lower() in ('1', 'true', 'yes')

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '*').split(',')

# Trusted origins for CSRF (comma separated, e.g. https://checkin.example.com)
CSRF_TRUSTED_ORIGINS = [
    origin for origin in os.environ.get('CSRF_TRUSTED_ORIGINS', '').split(',') if origin
]

# Trust proxy headers from Nginx/Cloudflare
USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'checkin',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'checkin_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'checkin_project.wsgi.application'

# =============================================================================
# DATABASE CONFIGURATION
# =============================================================================
# Reservations live in the hosted document store (see RESERVATIONS_TABLE).
# The local database only backs Django's own contrib apps.
import os as _os
_db_path = Path('/app/data/db.sqlite3') if _os.path.isdir('/app/data') else BASE_DIR / 'db.sqlite3'
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': _db_path,
    }
}

AUTH_PASSWORD_VALIDATORS = []

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.environ.get('TIMEZONE', 'UTC')
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC AND MEDIA FILES
# =============================================================================
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

MEDIA_URL = '/media/'
_media_path = '/app/media' if _os.path.isdir('/app/media') else str(BASE_DIR / 'media')
MEDIA_ROOT = _media_path

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedStaticFilesStorage",
    },
}

# Gallery uploads of phone photos can be large
DATA_UPLOAD_MAX_MEMORY_SIZE = 20 * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 20 * 1024 * 1024

# Use signed cookie sessions so the app does not require DB-backed sessions.
# Only the reservation summary is kept here; images are staged on disk.
SESSION_ENGINE = 'django.contrib.sessions.backends.signed_cookies'
SESSION_COOKIE_NAME = 'checkin_session'
SESSION_COOKIE_AGE = 60 * 60  # 1 hour
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = 'Lax'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# =============================================================================
# LOGGING
# =============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': os.environ.get('LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'botocore': {'level': 'WARNING'},
        'boto3': {'level': 'WARNING'},
    },
}

# =============================================================================
# RESERVATION STORE
# =============================================================================
# The hotel's reservations are kept in a single document (one item per hotel
# account) holding a "reservation" list.
HOTEL_ACCOUNT = os.environ.get('HOTEL_ACCOUNT', 'hotel@example.com')
HOTEL_DOCUMENT = os.environ.get('HOTEL_DOCUMENT', 'hotel')

# DynamoDB table; when empty the in-memory emulator is used
RESERVATIONS_TABLE = os.environ.get('RESERVATIONS_TABLE', '')
AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

# Optional JSON file used to seed the in-memory emulator at startup
RESERVATIONS_FIXTURE = os.environ.get('RESERVATIONS_FIXTURE', '')

# =============================================================================
# ID IMAGE STORAGE
# =============================================================================
# S3 bucket for uploaded ID images; when empty MEDIA_ROOT is used
CHECKIN_STORAGE_BUCKET = os.environ.get('CHECKIN_STORAGE_BUCKET', '')
CHECKIN_STORAGE_PUBLIC_BASE_URL = os.environ.get('CHECKIN_STORAGE_PUBLIC_BASE_URL', '')
CHECKIN_STORAGE_URL_EXPIRY = int(os.environ.get('CHECKIN_STORAGE_URL_EXPIRY', 7 * 24 * 60 * 60))

# Absolute site URL used to build links to MEDIA_ROOT uploads
CHECKIN_PUBLIC_URL = os.environ.get('CHECKIN_PUBLIC_URL', '')

# Captured images wait here until the guest submits the check-in
_staging_default = '/app/data/staging' if _os.path.isdir('/app/data') else str(BASE_DIR / 'staging')
CHECKIN_STAGING_ROOT = os.environ.get('CHECKIN_STAGING_ROOT', _staging_default)

# Front desk phone number shown on the error page
FRONT_DESK_PHONE = os.environ.get('FRONT_DESK_PHONE', '0')
