"""
Production environment configuration.

These are the baseline defaults. Local overrides live in config_local.py.
"""

# FastAPI docs are disabled in production
DOCS_ENABLED = False

CORS_ORIGINS = [
    "https://podcasts.example.com",
]

ALLOWED_HOSTS = [
    "podcasts.example.com",
    "api.podcasts.example.com",
    "localhost",
    "127.0.0.1",
]
