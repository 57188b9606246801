"""
Production overrides for the bundle engine.
Layered over .settings; everything deployment-specific comes from the environment.
"""
import logging
import os
from urllib.parse import urlparse

from .settings import *  # noqa: F401,F403

logger = logging.getLogger(__name__)

DEBUG = False

SECRET_KEY = os.environ.get('SECRET_KEY')
if not SECRET_KEY:
    raise ValueError("SECRET_KEY environment variable must be set in production")

ALLOWED_HOSTS = [host.strip() for host in os.environ.get('ALLOWED_HOSTS', '').split(',') if host.strip()]
if not ALLOWED_HOSTS:
    raise ValueError(
        "ALLOWED_HOSTS environment variable must be set in production. "
        "Set it to a comma-separated list of the domains serving the bundle API."
    )


# Database: PostgreSQL, so purchases can rely on row locking of the conditional stock update

def _postgres(name, user, password, host, port):
    return {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': name,
        'USER': user,
        'PASSWORD': password,
        'HOST': host,
        'PORT': port or '5432',
        'CONN_MAX_AGE': int(os.environ.get('DB_CONN_MAX_AGE', '60')),
        'OPTIONS': {'connect_timeout': 10},
    }


database_url = os.environ.get('DATABASE_URL', '').strip()
parsed = urlparse(database_url) if database_url else None
if parsed and parsed.scheme in ('postgres', 'postgresql') and parsed.hostname:
    DATABASES = {
        'default': _postgres(parsed.path.lstrip('/'), parsed.username, parsed.password, parsed.hostname, parsed.port)
    }
else:
    if database_url:
        logger.warning("DATABASE_URL is not a postgres URL; using DB_* variables instead.")
    DATABASES = {
        'default': _postgres(
            os.environ.get('DB_NAME'),
            os.environ.get('DB_USER'),
            os.environ.get('DB_PASSWORD'),
            os.environ.get('DB_HOST', 'localhost'),
            os.environ.get('DB_PORT'),
        )
    }


# Cache: every worker must see the same homepage layout key, or an invalidation
# in one process leaves stale layouts in the others. Run `createcachetable` once.

CACHES = {
    'default': {
        'BACKEND': os.environ.get('CACHE_BACKEND', 'django.core.cache.backends.db.DatabaseCache'),
        'LOCATION': os.environ.get('CACHE_LOCATION', 'bundle_cache'),
    }
}


# Static files are collected and served by the web server. Bundle images do not go
# through STORAGES: they are uploaded with the cloudinary SDK (bundles.cloudinary_utils).

STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'django.contrib.staticfiles.storage.ManifestStaticFilesStorage',
    },
}

USE_CLOUDINARY = os.environ.get('USE_CLOUDINARY', 'True').lower() == 'true'


# Security headers

SECURE_SSL_REDIRECT = os.environ.get('SECURE_SSL_REDIRECT', 'True').lower() == 'true'
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_HSTS_INCLUDE_SUBDOMAINS = True


# CORS: storefront and admin front-ends only, e.g. https://shop.example.com,https://admin.example.com

CORS_ALLOWED_ORIGINS = [
    origin.strip() for origin in os.environ.get('CORS_ALLOWED_ORIGINS', '').split(',') if origin.strip()
]
CORS_ALLOW_ALL_ORIGINS = False
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'authorization',  # Token authentication for the admin API
    'content-type',
    'origin',
    'x-csrftoken',
    'x-requested-with',
    'idempotency-key',  # add-to-cart retries
]


# Logging: base config plus a file handler for request and bundle engine logs

LOG_DIR = os.environ.get('LOG_DIR', os.path.join(BASE_DIR, 'logs'))
os.makedirs(LOG_DIR, exist_ok=True)

LOGGING['handlers']['console']['level'] = 'INFO'
LOGGING['handlers']['file'] = {
    'level': 'INFO',
    'class': 'logging.FileHandler',
    'filename': os.path.join(LOG_DIR, 'bundles.log'),
    'formatter': 'verbose',
}
for _name in ('django', 'bundles'):
    LOGGING['loggers'].setdefault(_name, {'propagate': False})
    LOGGING['loggers'][_name].update({'handlers': ['console', 'file'], 'level': 'INFO'})
LOGGING['root'] = {'handlers': ['console', 'file'], 'level': 'INFO'}
