"""Caller client, a thin consumer of gateway operations.

* ``call(path, operation, params)``  → decoded JSON result
* ``header(obj, **props)``           → compound vendor header

Uses ``httpx.AsyncClient`` with connection pooling.
**Never** imports from ``gateway/`` or ``bridge/``.

Run directly for a quick demo against a local gateway::

    python -m caller.client
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from wire.messages import ErrorMessage

log = logging.getLogger(__name__)


class RemoteOperationError(Exception):
    """Raised when the gateway answers with an error status."""

    def __init__(self, status: int, error: ErrorMessage) -> None:
        self.status = status
        self.error = error
        super().__init__(f"[{status} {error.code}] {error.message}")


def _error_message(resp: httpx.Response) -> ErrorMessage:
    try:
        return ErrorMessage.from_dict(resp.json())
    except ValueError:
        return ErrorMessage(resp.text or resp.reason_phrase)


class OperationClient:
    """Async client for operations exposed by a gateway.

    Parameters
    ----------
    base_url : str
        Gateway origin, e.g. ``http://127.0.0.1:8100``.
    vendor : str
        Vendor segment of ``X-<vendor>-<Object>`` headers.
    timeout : float
        Default request timeout in seconds.
    max_retries : int
        Max connection-level retries.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8100",
        vendor: str = "Vendor",
        timeout: float = 30.0,
        max_retries: int = 3,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.vendor = vendor
        self.max_retries = max_retries
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
        )

    # -- Lifecycle -----------------------------------------------------

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OperationClient":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # -- Internal retry helper -----------------------------------------

    def _get_retrier(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=10),
            retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
            reraise=True,
        )

    # -- Headers -------------------------------------------------------

    def header(self, obj: str, **props: Any) -> dict[str, str]:
        """Render a header object as ``X-<vendor>-<Obj>: k=v;k=v``."""
        name = f"X-{self.vendor}-{obj[:1].upper()}{obj[1:]}"
        return {name: ";".join(f"{k}={v}" for k, v in props.items())}

    # -- Calls ---------------------------------------------------------

    async def call(
        self,
        path: str,
        operation: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        verb: str = "POST",
    ) -> Any:
        """Invoke *operation* on the service at *path* and return its result.

        GET sends *params* as the query string; the other verbs send
        them as a JSON entity.  Raises ``RemoteOperationError`` on any
        error status.
        """
        url = f"/{path.strip('/')}/{operation}"
        request: dict[str, Any] = {"headers": headers or {}}
        if verb == "GET":
            request["params"] = params or {}
        elif params:
            request["json"] = params

        log.debug("%s → %s", verb, url)

        async for attempt in self._get_retrier():
            with attempt:
                resp = await self._client.request(verb, url, **request)

        if resp.is_error:
            raise RemoteOperationError(resp.status_code, _error_message(resp))
        return resp.json()


# ── Demo entrypoint ──────────────────────────────────────────────────


async def _demo() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async with OperationClient() as client:
        print("── put_widget ──")
        widget = {"id": 1, "name": "sprocket", "price": "3.50", "colour": "red"}
        result = await client.call("/widgets", "put_widget", {"widget": widget})
        print(f"  result: {result}")

        print("── get_widget ──")
        context = client.header("context", user="demo", branch="north")
        result = await client.call("/widgets", "get_widget", {"id": "1"}, headers=context, verb="GET")
        print(f"  result: {result}")

        print("── quote ──")
        result = await client.call("/widgets", "quote", {"id": 1, "quantity": "1,000", "on": "29/03/2019"})
        print(f"  result: {result}")

        print("── done ──")


if __name__ == "__main__":
    import anyio

    anyio.run(_demo)
