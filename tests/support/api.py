"""Secrets the API fixtures install into settings."""

WEBHOOK_SECRET = "test-webhook-secret"
ADMIN_TOKEN = "test-admin-token"
VERIFY_TOKEN = "verify-me"
