"""
Django settings for the Inventa backend.

All deployment-specific values come from environment variables so the same
module serves development, test and production.
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent
ENV = os.environ.get

SECRET_KEY = ENV('DJANGO_SECRET_KEY', 'django-insecure-inventa-dev-key-change-me')
DEBUG = ENV('DJANGO_DEBUG', 'True').lower() == 'true'
ALLOWED_HOSTS = [h for h in ENV('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'rest_framework',
    'rest_framework.authtoken',
    'django_filters',
    'rules',

    # Local apps
    'accounts',
    'inventory',
    'requisitions',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'app.middleware.EnvironmentSecurityMiddleware',
]

ROOT_URLCONF = 'app.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
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

WSGI_APPLICATION = 'app.wsgi.application'

# Database: SQLite for local work, PostgreSQL when DB_ENGINE=postgres
if ENV('DB_ENGINE', 'sqlite') == 'postgres':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': ENV('DB_NAME', 'inventa'),
            'USER': ENV('DB_USER', 'inventa'),
            'PASSWORD': ENV('DB_PASSWORD', ''),
            'HOST': ENV('DB_HOST', 'localhost'),
            'PORT': ENV('DB_PORT', '5432'),
            'ATOMIC_REQUESTS': False,
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ENV('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        }
    }

AUTH_USER_MODEL = 'accounts.User'

AUTHENTICATION_BACKENDS = [
    'rules.permissions.ObjectPermissionBackend',
    'django.contrib.auth.backends.ModelBackend',
]

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = ENV('LANGUAGE_CODE', 'en-us')
TIME_ZONE = ENV('TIME_ZONE', 'Asia/Jakarta')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = ENV('DJANGO_STATIC_ROOT', str(BASE_DIR / 'staticfiles'))
MEDIA_URL = '/media/'
MEDIA_ROOT = ENV('DJANGO_MEDIA_ROOT', str(BASE_DIR / 'media'))

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
        'rest_framework.filters.SearchFilter',
        'rest_framework.filters.OrderingFilter',
    ),
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': int(ENV('DJANGO_PAGE_SIZE', '10')),
}

# Cache (distribution summaries)
REDIS_URL = ENV('REDIS_URL', 'redis://localhost:6379/0')
if ENV('CACHE_BACKEND', 'locmem') == 'redis':
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.redis.RedisCache',
            'LOCATION': REDIS_URL,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'inventa',
        }
    }

# Celery
CELERY_BROKER_URL = ENV('CELERY_BROKER_URL', REDIS_URL)
CELERY_RESULT_BACKEND = ENV('CELERY_RESULT_BACKEND', REDIS_URL)
CELERY_TASK_ALWAYS_EAGER = ENV('CELERY_TASK_ALWAYS_EAGER', 'True').lower() == 'true'
CELERY_TASK_EAGER_PROPAGATES = False
CELERY_TIMEZONE = TIME_ZONE

# Email
EMAIL_BACKEND = ENV('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = ENV('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(ENV('EMAIL_PORT', '25'))
EMAIL_HOST_USER = ENV('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = ENV('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = ENV('EMAIL_USE_TLS', 'False').lower() == 'true'
DEFAULT_FROM_EMAIL = ENV('DEFAULT_FROM_EMAIL', 'Inventa <no-reply@inventa.local>')

# Inventa
FRONTEND_URL = ENV('FRONTEND_URL', 'http://localhost:3000')
INVENTA_QR_TOKEN_PREFIX = ENV('INVENTA_QR_TOKEN_PREFIX', 'QR')
INVENTA_DISTRIBUTION_SUMMARY_TTL = int(ENV('INVENTA_DISTRIBUTION_SUMMARY_TTL', '300'))

# Security (production)
SECURE_SSL_REDIRECT = ENV('SECURE_SSL_REDIRECT', 'False').lower() == 'true'
SESSION_COOKIE_SECURE = ENV('SESSION_COOKIE_SECURE', 'False').lower() == 'true'
CSRF_COOKIE_SECURE = SESSION_COOKIE_SECURE

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {message}',
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
        'level': ENV('LOG_LEVEL', 'WARNING'),
    },
    'loggers': {
        'accounts': {'handlers': ['console'], 'level': ENV('APP_LOG_LEVEL', 'INFO'), 'propagate': False},
        'inventory': {'handlers': ['console'], 'level': ENV('APP_LOG_LEVEL', 'INFO'), 'propagate': False},
        'requisitions': {'handlers': ['console'], 'level': ENV('APP_LOG_LEVEL', 'INFO'), 'propagate': False},
        'app': {'handlers': ['console'], 'level': ENV('APP_LOG_LEVEL', 'INFO'), 'propagate': False},
    },
}
