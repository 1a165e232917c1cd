# File: remote_sink.py
"""HTTP implementation of the RemoteSink used by the sync queue.

Each item is POSTed as JSON to ``{remote_url}/sync/{kind}`` with an
Idempotency-Key header so the remote can discard duplicates of retried items.

Response handling:
- 2xx, 409 (already stored): acknowledged
- 408, 425, 429, 5xx, connection errors, timeouts: TransientSyncError
- any other 4xx: PermanentSyncError
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiohttp

from . import const
from .exceptions import PermanentSyncError, TransientSyncError
from .models import SyncAck

if TYPE_CHECKING:
    from .models import SyncItem


class HttpRemoteSink:
    """Push sync items to the WonderNest backend over HTTP."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        api_token: str | None = None,
        timeout: float = const.REMOTE_TIMEOUT_SECONDS,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._api_token = api_token
        self._timeout = timeout

    def url_for(self, kind: str) -> str:
        return self._base_url + const.REMOTE_SYNC_PATH.format(kind=kind)

    def _headers(self, item: SyncItem) -> dict[str, str]:
        headers = {const.REMOTE_HEADER_IDEMPOTENCY_KEY: item.idempotency_key}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    async def async_push(self, item: SyncItem) -> SyncAck:
        """Deliver one item.

        Raises:
            TransientSyncError: Worth retrying later
            PermanentSyncError: The remote rejected the payload
        """
        url = self.url_for(item.kind)
        body = ""
        try:
            async with asyncio.timeout(self._timeout):
                async with self._session.post(
                    url, json=item.payload, headers=self._headers(item)
                ) as response:
                    status = response.status
                    if status >= 400 and status != const.HTTP_STATUS_CONFLICT:
                        body = await response.text()
        except TimeoutError as err:
            raise TransientSyncError(f"Timeout pushing {item.kind} to {url}") from err
        except aiohttp.ClientError as err:
            raise TransientSyncError(f"Error pushing {item.kind} to {url}: {err}") from err

        if 200 <= status < 300:
            return SyncAck(item.idempotency_key)
        if status == const.HTTP_STATUS_CONFLICT:
            return SyncAck(item.idempotency_key, duplicate=True)
        if status >= 500 or status in const.HTTP_TRANSIENT_STATUSES:
            raise TransientSyncError(f"HTTP {status} pushing {item.kind}: {body}")
        raise PermanentSyncError(f"HTTP {status} rejected {item.kind}: {body}")
