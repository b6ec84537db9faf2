# config/settings/test.py
from .base import *

DEBUG = False
SECRET_KEY = 'test-secret'
DATABASES = {
    'default': dj_database_url.config(env='TEST_DATABASE_URL', default='sqlite:///:memory:'),
}
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
LOGGING["loggers"]["apps"]["level"] = "WARNING"
