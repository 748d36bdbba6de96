"""
Django settings for running the Lotman test suite.
"""

SECRET_KEY = 'lotman-tests'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'lotman',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

USE_TZ = True
TIME_ZONE = 'UTC'
LANGUAGE_CODE = 'pt-br'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOTMAN = {
    'ALERT_NOTIFIER': 'lotman.tests.backends.RecordingNotifier',
    'ORDER_BACKEND': 'lotman.tests.backends.MemoryOrderBackend',
    'CONTENTION_BACKOFF_MS': 0,
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {'class': 'logging.NullHandler'},
    },
    'loggers': {
        'lotman': {'handlers': ['null'], 'level': 'DEBUG'},
    },
}
