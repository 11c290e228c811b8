"""Shared service utilities."""

from portal_auth.services.shared.emails import has_domain, normalize_email
from portal_auth.services.shared.http_client import HTTPClient, HTTPClientError

__all__ = ["HTTPClient", "HTTPClientError", "has_domain", "normalize_email"]
