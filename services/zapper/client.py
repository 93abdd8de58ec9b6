#services/zapper/client.py
import httpx

from config import settings

ZAPPER_CLIENT = httpx.AsyncClient(
    timeout=httpx.Timeout(settings.ZAPPER_TIMEOUT_S, connect=5.0),
    limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    http2=True,
)
