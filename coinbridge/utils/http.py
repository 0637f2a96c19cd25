import aiohttp, asyncio, random, socket, logging
from typing import Any, Dict, Optional
from aiohttp import ClientTimeout

from ..errors import NetworkError

logger = logging.getLogger(__name__)

# Network/Retry settings (shared)
NET_MAX_RETRIES = 5
NET_BASE_BACKOFF = 0.5   # seconds
NET_TIMEOUT = ClientTimeout(total=12, sock_connect=6, sock_read=6)

_aiohttp_session: aiohttp.ClientSession | None = None
_external_ip: str | None = None

async def get_http_session() -> aiohttp.ClientSession:
    global _aiohttp_session
    if _aiohttp_session is None or _aiohttp_session.closed:
        _aiohttp_session = aiohttp.ClientSession(timeout=NET_TIMEOUT)
    return _aiohttp_session

async def close_http_session() -> None:
    global _aiohttp_session
    if _aiohttp_session is not None and not _aiohttp_session.closed:
        await _aiohttp_session.close()
    _aiohttp_session = None

async def jitter_backoff(attempt: int) -> float:
    # exponential backoff with a small random jitter
    return NET_BASE_BACKOFF * (2 ** attempt) + random.uniform(0, 0.2)

async def http_request(
    method: str,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    data: Any = None,
    json_body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    proxy: Optional[str] = None,
    retry: bool = True,
) -> str:
    """
    Send one HTTP request and return the body text.

    429/5xx and network errors are retried with jittered backoff when `retry` is set;
    any other status returns its body so the caller can read the exchange's own error.
    Raises NetworkError once the attempts are used up.
    """
    session = await get_http_session()
    attempts = NET_MAX_RETRIES if retry else 1
    last_err: Exception | str | None = None

    for attempt in range(attempts):
        try:
            async with session.request(method, url, params=params, data=data, json=json_body,
                                       headers=headers, proxy=proxy) as resp:
                text = await resp.text()
                if resp.status == 429 or resp.status >= 500:
                    last_err = f"HTTP {resp.status}: {text[:200]}"
                    if attempt + 1 < attempts:
                        wait = await jitter_backoff(attempt)
                        logger.warning("%s %s -> %s, retrying in %.2fs (attempt %d/%d)",
                                       method, url, resp.status, wait, attempt + 1, attempts)
                        await asyncio.sleep(wait)
                    continue
                return text
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            last_err = e
            if attempt + 1 < attempts:
                wait = await jitter_backoff(attempt)
                logger.warning("%s %s network error %s: %s, retrying in %.2fs",
                               method, url, type(e).__name__, e, wait)
                await asyncio.sleep(wait)

    raise NetworkError(f"network_error:{last_err}")

async def http_get_request(url: str, params: Optional[Dict[str, Any]] = None, proxy: Optional[str] = None) -> str:
    return await http_request("GET", url, params=params, proxy=proxy)

def get_external_ip() -> str:
    """Outbound interface address of this worker (no packet is sent)."""
    global _external_ip
    if _external_ip is None:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            s.connect(("8.8.8.8", 80))
            _external_ip = s.getsockname()[0]
        except OSError:
            _external_ip = "127.0.0.1"
        finally:
            s.close()
    return _external_ip
