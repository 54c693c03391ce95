# src/pagehealth/auditor/services/service_base.py
import logging
from abc import ABC
from typing import Any, Dict, Optional

from pagehealth.crawler.services.http_request_service import HttpRequestService
from pagehealth.exceptions import ServiceAuthError, ServiceUnavailableError

logger = logging.getLogger(__name__)


class ExternalService(ABC):
    """
    Interface for the optional remote analysis services.

    Subclasses talk to one API through the shared HttpRequestService and
    translate its status sentinels into ServiceError subclasses, which the
    validators answer with their local fallback.
    """

    name: str = "External"

    def __init__(self, http: HttpRequestService, settings: Optional[Dict[str, Any]] = None):
        self.http = http
        self.settings = settings or {}
        self.endpoint: str = (self.settings.get("endpoint") or "").strip()
        self.timeout: float = float(self.settings.get("timeout", 30))

    def is_configured(self) -> bool:
        return bool(self.endpoint) and self.settings.get("enabled", True) is not False

    def ensure_ok(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Raises for transport failures, auth rejections and non-2xx answers."""
        status = response.get("status", -99)
        if status < 0:
            raise ServiceUnavailableError(self.name, f"Request failed: {response.get('error', 'unknown error')}")
        if status in (401, 403):
            raise ServiceAuthError(self.name, f"Authentication rejected (HTTP {status})")
        if not 200 <= status < 300:
            raise ServiceUnavailableError(self.name, f"Unexpected HTTP {status}")
        logger.debug("%s answered HTTP %s in %sms", self.name, status,
                     response.get("timers", {}).get("total_elapsed"))
        return response

    def ensure_json(self, response: Dict[str, Any]) -> Any:
        payload = response.get("json")
        if payload is None:
            raise ServiceUnavailableError(self.name, "Response body is not valid JSON")
        return payload
