from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

EPN_ACCOUNT_NUMBER = '080880'
EPN_RESTRICT_KEY = 'test-restrict-key'
EPN_API_URL = 'https://epn.example.com/transact.pl'
EPN_TIMEOUT = 5

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
