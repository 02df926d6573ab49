import json
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from ..exceptions import TransportError
from .logging import get_logger

logger = get_logger(__name__)

# Connection pool configuration
DEFAULT_POOL_CONNECTIONS = 10  # Number of connection pools
DEFAULT_POOL_MAXSIZE = 20      # Max connections per pool
DEFAULT_POOL_BLOCK = False     # Don't block when pool exhausted

DEFAULT_USER_AGENT = "AppConnect-Client/1.0.0"


class StandardClient:
    """
    Standard HTTP client for AppConnect.

    Pools connections and sets standard headers. It never retries: every
    failure reaches the caller at once, and status codes are left for the
    caller to interpret.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        pool_connections: int = DEFAULT_POOL_CONNECTIONS,
        pool_maxsize: int = DEFAULT_POOL_MAXSIZE,
    ):
        self.timeout = timeout
        self.session = requests.Session()

        adapter = self._build_adapter(
            max_retries=0,
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
            pool_block=DEFAULT_POOL_BLOCK,
        )
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "application/json",
        })

    def _build_adapter(self, **kwargs) -> HTTPAdapter:
        return HTTPAdapter(**kwargs)

    def request(self, method: str, url: str, operation: Optional[str] = None, **kwargs) -> requests.Response:
        """Performs a request, mapping network failures to TransportError."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.SSLError as e:
            logger.error(f"TLS Error on {method} {url}: {e}")
            raise TransportError(f"TLS handshake failed: {e}", url=url, operation=operation) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Network Error on {method} {url}: {e}")
            raise TransportError(str(e), url=url, operation=operation) from e

    def get(self, url: str, **kwargs) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> requests.Response:
        return self.request("POST", url, **kwargs)

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def parse_json_body(response: requests.Response) -> Dict[str, Any]:
    """Decode a JSON object body; raises ValueError if the body is not a JSON object."""
    data = json.loads(response.content or b"null")
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def body_text(response: requests.Response, limit: int = 2048) -> str:
    """Response body as text, truncated for error details."""
    text = response.text or ""
    return text[:limit]
