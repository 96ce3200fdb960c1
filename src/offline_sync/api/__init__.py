"""HTTP transport and authenticated API client."""

from offline_sync.api.client import ApiClient
from offline_sync.api.transport import AiohttpTransport, HttpResponse, Transport

__all__ = ["AiohttpTransport", "ApiClient", "HttpResponse", "Transport"]
