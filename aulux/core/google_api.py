"""
Base for Google REST clients built with googleapiclient on behalf of a session.

googleapiclient service objects share one httplib2.Http, which is not thread-safe,
so every worker thread executes requests through its own AuthorizedHttp.
"""
import json
import logging
import threading
from typing import Any, Dict, Optional

import google_auth_httplib2
import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from aulux.core.errors import UpstreamAPIError


def _error_details(error: HttpError) -> Any:
    content = error.content
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        return json.loads(content) if content else None
    except (TypeError, ValueError):
        return content


class GoogleApiClient:
    """One Google API (name/version) for one set of credentials."""

    api_name = ""
    api_version = ""
    service_label = "Google"

    def __init__(self, credentials: Any, timeout: Optional[float] = 20, logger: Optional[logging.Logger] = None):
        self._creds = credentials
        self.timeout = timeout
        self.logger = logger or logging.getLogger(self.__class__.__name__)
        self._local = threading.local()
        self._service = build(
            self.api_name,
            self.api_version,
            credentials=credentials,
            cache_discovery=False,
        )

    def _http(self) -> google_auth_httplib2.AuthorizedHttp:
        http = getattr(self._local, "http", None)
        if http is None:
            http = google_auth_httplib2.AuthorizedHttp(self._creds, http=httplib2.Http(timeout=self.timeout))
            self._local.http = http
        return http

    def _execute(self, request: Any) -> Dict[str, Any]:
        """Execute one API request; non-2xx becomes UpstreamAPIError with the upstream body."""
        try:
            return request.execute(http=self._http()) or {}
        except HttpError as e:
            status = int(getattr(e.resp, "status", 502) or 502)
            self.logger.error(f"{self.service_label} API call failed: {status} {e}")
            raise UpstreamAPIError(self.service_label, status, _error_details(e)) from e
