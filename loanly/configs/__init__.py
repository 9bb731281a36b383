#!/usr/bin/env python

"""
    Configurations for Loanly

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
HOST = os.environ.get('LOANLY_HOST', 'localhost')
PORT = int(os.environ.get('LOANLY_PORT', 8080))
WORKERS = int(os.environ.get('LOANLY_WORKERS', 1))
DEBUG = bool(int(os.environ.get('LOANLY_DEBUG', 0)))
LOG_LEVEL = os.environ.get('LOANLY_LOG_LEVEL', 'info')

# Signing secret for bearer tokens
SEED = os.environ.get('LOANLY_SEED', 'loanly-dev-seed')
TOKEN_TTL = int(os.environ.get('LOANLY_TOKEN_TTL', 604800))
PASSWORD_ROUNDS = int(os.environ.get('LOANLY_PASSWORD_ROUNDS', 260000))

# Lending policy
DEFAULT_PAGE_SIZE = int(os.environ.get('LOANLY_DEFAULT_PAGE_SIZE', 10))
MAX_PAGE_SIZE = int(os.environ.get('LOANLY_MAX_PAGE_SIZE', 100))
MAX_LOAN_DAYS = int(os.environ.get('LOANLY_MAX_LOAN_DAYS', 365))

# Bootstrap administrator, created on startup when both are set
ADMIN_NAME = os.environ.get('ADMIN_NAME')
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL')
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD')

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST', 'localhost'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'loanly'),
}

# Database configuration
DB_URI = os.environ.get('LOANLY_DB_URI') or (
    "sqlite:///:memory:" if TESTING else
    'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
)

__all__ = [
    'HOST', 'PORT', 'DEBUG', 'OPTIONS', 'LOG_LEVEL', 'DB_URI', 'DB_CONFIG',
    'TESTING', 'SEED', 'TOKEN_TTL', 'DEFAULT_PAGE_SIZE', 'MAX_PAGE_SIZE',
    'MAX_LOAN_DAYS', 'ADMIN_NAME', 'ADMIN_EMAIL', 'ADMIN_PASSWORD', 'PASSWORD_ROUNDS',
]
