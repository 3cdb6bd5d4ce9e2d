from __future__ import annotations

import logging

LOGGER = logging.getLogger("shopclient.gateway")
APP_VERSION = "0.1.0"

DEFAULT_API_BASE_URL = "http://localhost:4000"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_CREDENTIALS_PATH = ".credentials.json"

AUTH_LOGIN = "/api/auth/login"
AUTH_REGISTER = "/api/auth/register"
AUTH_REFRESH = "/api/auth/refresh"
AUTH_LOGOUT = "/api/auth/logout"
AUTH_PERMISSIONS = "/api/auth/permissions"
AUTH_FORGOT_PASSWORD = "/api/auth/forgot-password"
AUTH_RESET_PASSWORD = "/api/auth/reset-password"
AUTH_VERIFY_EMAIL = "/api/auth/verify-email"
ADMIN_AUTH_LOGIN = "/api/admin/auth/login"
USERS_ME = "/api/users/me"

# Endpoints that must never carry or renew an access token.
SKIP_AUTH_PATHS = (
    AUTH_LOGIN,
    ADMIN_AUTH_LOGIN,
    AUTH_REGISTER,
    AUTH_REFRESH,
    AUTH_FORGOT_PASSWORD,
    AUTH_RESET_PASSWORD,
    AUTH_VERIFY_EMAIL,
)

RETRIED_EXTENSION = "shopclient_retried"
