from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping, Optional, Union

import requests

from hyni import config
from hyni import logger as logger_mod
from hyni.context.errors import HyniError

log = logger_mod.get_logger()


class TransportError(HyniError):
    """HTTP-level failure talking to a provider."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def iter_sse_data(lines: Iterable[Union[str, bytes]]) -> Iterator[str]:
    """Yield the payload of every `data:` line of a Server-Sent-Events stream."""
    for line in lines:
        if not line:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        if not line.startswith("data:"):
            continue
        yield line[len("data:") :].strip()


class HttpTransport:
    """Sends prepared request bodies and hands back decoded responses.

    No retries and no rate limiting; failures are raised as TransportError.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        *,
        timeout_s: Optional[float] = None,
    ):
        self._session = session or requests.Session()
        self._timeout_s = timeout_s if timeout_s is not None else config.HTTP_TIMEOUT_S

    def _request(
        self,
        method: str,
        endpoint: str,
        headers: Mapping[str, str],
        body: Any,
        *,
        stream: bool = False,
    ) -> requests.Response:
        try:
            response = self._session.request(
                method,
                endpoint,
                headers=dict(headers),
                json=body,
                timeout=self._timeout_s,
                stream=stream,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {endpoint} failed: {e}") from e

        if not response.ok:
            text = response.text
            response.close()
            log.error(f"❌ {endpoint} returned HTTP {response.status_code}")
            raise TransportError(
                f"API error ({response.status_code})",
                status_code=response.status_code,
                body=text,
            )
        return response

    def send(
        self,
        endpoint: str,
        headers: Mapping[str, str],
        body: Any,
        *,
        method: str = "POST",
    ) -> Any:
        response = self._request(method, endpoint, headers, body)
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

    def stream(
        self,
        endpoint: str,
        headers: Mapping[str, str],
        body: Any,
        *,
        method: str = "POST",
    ) -> Iterator[str]:
        response = self._request(method, endpoint, headers, body, stream=True)
        response.encoding = "utf-8"
        try:
            yield from iter_sse_data(response.iter_lines(decode_unicode=True))
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Stream from {endpoint} failed: {e}") from e
        finally:
            response.close()
