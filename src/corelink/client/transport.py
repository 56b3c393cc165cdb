from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import requests
import structlog
import urllib3
from requests.structures import CaseInsensitiveDict

from corelink.protocol.constants import CORRELATION_HEADER, DEFAULT_HOSTNAME, DEFAULT_PORT
from corelink.protocol.validation import json_dumps_sorted
from .errors import TransportError

logger = structlog.get_logger()


@dataclass(frozen=True)
class TransportResponse:
    body: str
    headers: Mapping[str, str]
    status_code: int = 200

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name)


class Transport:
    """
    Single request/response JSON exchanges with the core over HTTPS.

    The core usually serves a self-signed certificate, so verification is off
    unless asked for. A correlation id, once learned, rides on every request.
    """

    def __init__(
        self,
        hostname: str = DEFAULT_HOSTNAME,
        port: int = DEFAULT_PORT,
        *,
        verify: bool | str = False,
        timeout: Optional[float] = None,
        correlation_header: str = CORRELATION_HEADER,
        http: Any = None,
    ):
        self.hostname = hostname
        self.port = port
        self.verify = verify
        self.timeout = timeout
        self.correlation_header = correlation_header
        self._http = http if http is not None else requests.Session()
        self._owns_http = http is None
        self._correlation_id: Optional[str] = None
        if verify is False:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    @property
    def base_url(self) -> str:
        return f"https://{self.hostname}:{self.port}"

    def set_correlation_id(self, correlation_id: str):
        if not correlation_id:
            raise ValueError("correlation id must be a non-empty string")
        self._correlation_id = correlation_id

    def get_correlation_id(self) -> Optional[str]:
        return self._correlation_id

    def clear_correlation_id(self):
        self._correlation_id = None

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._correlation_id:
            headers[self.correlation_header] = self._correlation_id
        return headers

    def send(self, operation: str, body: Dict[str, Any]) -> TransportResponse:
        data = json_dumps_sorted(body).encode("utf-8")
        try:
            resp = self._http.post(
                self.base_url + operation,
                data=data,
                headers=self._headers(),
                verify=self.verify,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning("transport_error", operation=operation, error=type(e).__name__)
            raise TransportError(operation, f"request failed ({type(e).__name__})") from e

        if resp.status_code >= 400:
            logger.warning("transport_http_error", operation=operation, status=resp.status_code)
            raise TransportError(operation, f"HTTP {resp.status_code}", status_code=resp.status_code)

        logger.debug("transport_exchange", operation=operation, status=resp.status_code,
                     correlated=self._correlation_id is not None)
        return TransportResponse(body=resp.text, headers=CaseInsensitiveDict(resp.headers),
                                 status_code=resp.status_code)

    def close(self):
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc):
        self.close()
