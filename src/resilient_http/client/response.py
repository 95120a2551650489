"""Response decoding and the :class:`ApiResult` envelope.

:func:`extract_response_data` turns a completed :class:`httpx.Response`
into the payload handed to response interceptors; :func:`error_message`
builds the message of an
:class:`~resilient_http.exceptions.HttpStatusError`. :class:`ApiResult`
is what every :class:`~resilient_http.client.ApiClient` verb returns, and
:func:`format_api_result` prints one through the output system.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from resilient_http.output import get_output


@dataclass(frozen=True)
class ApiResult:
    """The decoded payload of a call and where it came from.

    Attributes:
        data: The payload after response interceptors ran.
        from_cache: ``True`` when served from the response cache without
            any network traffic.
        status_code: HTTP status of the live response; ``None`` for a
            cache hit.
    """

    data: Any
    from_cache: bool = False
    status_code: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        """Flatten into one dict with a ``from_cache`` flag.

        Dict payloads are merged with the flag; any other payload is
        placed under ``data``.
        """
        if isinstance(self.data, dict):
            return {**self.data, "from_cache": self.from_cache}
        return {"data": self.data, "from_cache": self.from_cache}


def extract_response_data(response: httpx.Response) -> Any:
    """Extract the body from an HTTP response.

    Parses JSON first and falls back to the raw text. Returns ``None`` for
    an empty body (``204 No Content``, most ``DELETE`` replies).
    """
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def error_message(response: httpx.Response) -> str:
    """Build ``HTTP <status>: <detail>`` for an error response.

    The detail comes from a ``message``, ``error`` or ``detail`` field of a
    JSON object body, from a non-object JSON body, or from the first 200
    characters of a text body.
    """
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {response.status_code}"
    return f"{prefix}: {msg}" if msg else prefix


def format_api_result(result: ApiResult) -> None:
    """Print *result* via the active output manager.

    A status/provenance line goes to stderr and the payload to stdout.
    """
    output = get_output()
    if result.from_cache:
        output.info("From cache")
    else:
        output.info(f"HTTP {result.status_code} (fresh)")
    if result.data is not None:
        output.format_response(result.data)
