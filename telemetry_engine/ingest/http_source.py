"""Cliente HTTP para fuentes REST de lecturas."""

from __future__ import annotations

import logging
from typing import List, Optional

import requests

from ..core.domain.errors import SourceFetchError
from .client_interface import ISourceClient, RawReading
from .sources import SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


class HttpSourceClient(ISourceClient):
    """GET contra el endpoint de la fuente.

    La respuesta puede ser una lista JSON de lecturas o un único objeto.
    Cualquier fallo (red, status, JSON, forma) se reporta como
    SourceFetchError para que el pipeline aísle la fuente.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch(self, source: SourceConfig, now: float) -> List[RawReading]:
        if not source.url:
            raise SourceFetchError(source.id, "no url configured")

        headers = {"Accept": "application/json"}
        if source.api_key:
            headers["Authorization"] = f"Bearer {source.api_key}"

        try:
            response = self._session.get(source.url, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise SourceFetchError(source.id, f"request failed: {e}") from e

        if not response.ok:
            raise SourceFetchError(source.id, f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise SourceFetchError(source.id, f"invalid JSON: {e}") from e

        if isinstance(body, dict):
            return [body]
        if isinstance(body, list):
            return body
        raise SourceFetchError(source.id, f"unexpected payload type {type(body).__name__}")

    def close(self) -> None:
        self._session.close()
