"""API version exposed in responses and health checks."""

API_VERSION = "1.0.0"
