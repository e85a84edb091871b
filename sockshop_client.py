#!/usr/bin/env python3
"""
🧦 Sock Shop HTTP Client
========================
Session-scoped HTTP client and catalog fetcher for the Weave Socks demo shop.

Features:
- One aiohttp session per simulated user (own cookie jar, public-suffix aware)
- HTTP Basic login, GET, POST (JSON) and DELETE relative to a target host
- Non-persistent connections and a fixed per-request timeout
- One-shot catalog retrieval before any load is generated

Requirements:
    pip install aiohttp publicsuffixlist
"""

import asyncio
import aiohttp
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from http.cookies import Morsel, SimpleCookie
from typing import Optional, List, Dict, Any, Tuple
from urllib.parse import urlparse

from publicsuffixlist import PublicSuffixList


DEFAULT_TIMEOUT = 10.0

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ErrorKind(Enum):
    """Kinds of load test failures."""
    INVALID_HOST = "invalid_host"
    FETCH_FAILED = "fetch_failed"
    DECODE_FAILED = "decode_failed"
    EMPTY_CATALOG = "empty_catalog"
    REQUEST_FAILED = "request_failed"


class LoadTestError(Exception):
    """Base error carrying a kind and a context message."""
    kind = ErrorKind.REQUEST_FAILED

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if self.__cause__ is not None:
            return f"{self.message}: {self.__cause__}"
        return self.message


class InvalidHost(LoadTestError):
    kind = ErrorKind.INVALID_HOST


class FetchFailed(LoadTestError):
    kind = ErrorKind.FETCH_FAILED


class DecodeFailed(LoadTestError):
    kind = ErrorKind.DECODE_FAILED


class EmptyCatalog(LoadTestError):
    kind = ErrorKind.EMPTY_CATALOG


class RequestFailed(LoadTestError):
    kind = ErrorKind.REQUEST_FAILED


# Transport level failures. Anything else is a bug and propagates.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)


def normalize_host(host: Optional[str]) -> str:
    """Validate a target URL and strip its trailing slash."""
    if not host:
        raise InvalidHost("hostname is empty")

    try:
        parsed = urlparse(host)
        parsed.port  # raises on a malformed port
    except ValueError as e:
        raise InvalidHost(f"could not parse hostname {host!r}") from e

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidHost(f"hostname {host!r} must look like http://host:port")

    return host.rstrip('/')


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class CatalogElement:
    """One purchasable product."""
    id: str = ""
    name: str = ""
    description: str = ""
    image_urls: Tuple[str, ...] = ()
    price: float = 0.0
    count: int = 0
    tags: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogElement":
        return cls(
            id=_text(data, "id"),
            name=_text(data, "name"),
            description=_text(data, "description"),
            image_urls=_text_list(data, "imageUrl"),
            price=float(data.get("price") or 0.0),
            count=int(data.get("count") or 0),
            tags=_text_list(data, "tag"),
        )


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _text_list(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list):
        raise DecodeFailed(f"error decoding the catalog response: {key!r} should be a list, got {value!r}")
    return tuple(str(item) for item in value)


Catalog = List[CatalogElement]


@dataclass(frozen=True)
class CartRequest:
    """Quantity of one catalog item to add to the cart."""
    id: str
    quantity: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "quantity": self.quantity}


@dataclass
class RequestResult:
    """Outcome of a single HTTP call."""
    method: str
    path: str
    status_code: int = 0
    latency_ms: float = 0.0
    error: Optional[RequestFailed] = None
    timestamp: float = field(default_factory=time.time)

    @property
    def ok(self) -> bool:
        return self.error is None


# =============================================================================
# COOKIES
# =============================================================================

PUBLIC_SUFFIXES = PublicSuffixList()


class PublicSuffixCookieJar(aiohttp.CookieJar):
    """
    Cookie jar that refuses cookies scoped to a public suffix.

    A `Domain=co.uk` cookie set by shop.co.uk is dropped instead of being sent
    to every *.co.uk host. When the host itself is the public suffix the
    cookie is kept as a host-only cookie.
    """

    def __init__(self, public_suffixes: Optional[PublicSuffixList] = None, **kwargs):
        # unsafe=True keeps cookies from IP address hosts (127.0.0.1 etc.)
        kwargs.setdefault("unsafe", True)
        super().__init__(**kwargs)
        self._public_suffixes = public_suffixes or PUBLIC_SUFFIXES

    def update_cookies(self, cookies, response_url=None):
        if isinstance(cookies, str):
            parsed = SimpleCookie()
            parsed.load(cookies)
            cookies = parsed
        items = cookies.items() if isinstance(cookies, Mapping) else cookies
        host = (response_url.raw_host or "").lower() if response_url is not None else ""

        kept = []
        for name, cookie in items:
            if isinstance(cookie, Morsel):
                domain = cookie["domain"].lstrip(".").lower()
                if domain and self._public_suffixes.is_public(domain):
                    if domain != host:
                        logger.debug("dropping cookie %s scoped to public suffix %s", name, domain)
                        continue
                    cookie = cookie.copy()
                    cookie["domain"] = ""
            kept.append((name, cookie))

        if response_url is None:
            super().update_cookies(kept)
        else:
            super().update_cookies(kept, response_url)


# =============================================================================
# SESSION CLIENT
# =============================================================================

class SockShopClient:
    """
    HTTP client for one simulated user.

    Every instance owns its aiohttp session and cookie jar, so login cookies
    carry across calls of the same user and never leak to another one.
    Status codes are not validated: only transport failures are errors.
    """

    def __init__(self, host: str, timeout: float = DEFAULT_TIMEOUT):
        self.host = normalize_host(host)
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "SockShopClient":
        self._ensure_session()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            jar = PublicSuffixCookieJar()
            connector = aiohttp.TCPConnector(force_close=True)
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                connector=connector,
                cookie_jar=jar,
            )
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def url_for(self, path: str = "") -> str:
        return f"{self.host}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        auth: Optional[aiohttp.BasicAuth] = None,
    ) -> RequestResult:
        """Issue one request, drain the body and record the outcome."""
        session = self._ensure_session()
        url = self.url_for(path)
        start = time.perf_counter()

        try:
            async with session.request(method, url, json=payload, auth=auth) as response:
                await response.read()
                return RequestResult(
                    method=method,
                    path=path,
                    status_code=response.status,
                    latency_ms=(time.perf_counter() - start) * 1000,
                )
        except TRANSPORT_ERRORS as e:
            error = RequestFailed(f"error with {method} request to {url}")
            error.__cause__ = e
            return RequestResult(
                method=method,
                path=path,
                latency_ms=(time.perf_counter() - start) * 1000,
                error=error,
            )

    async def login(self, username: str, password: str) -> RequestResult:
        """GET /login with Basic credentials; the response is not inspected."""
        return await self._request("GET", "login", auth=aiohttp.BasicAuth(username, password))

    async def get(self, path: str = "") -> RequestResult:
        return await self._request("GET", path)

    async def post(self, path: str, payload: Optional[Dict[str, Any]] = None) -> RequestResult:
        return await self._request("POST", path, payload=payload)

    async def delete(self, path: str) -> RequestResult:
        return await self._request("DELETE", path)


# =============================================================================
# CATALOG
# =============================================================================

def decode_catalog(data: Any) -> Catalog:
    """Turn the decoded /catalogue JSON into catalog elements."""
    if not isinstance(data, list):
        raise DecodeFailed(f"error decoding the catalog response: expected a list, got {type(data).__name__}")

    catalog = []
    for element in data:
        if not isinstance(element, dict):
            raise DecodeFailed(f"error decoding the catalog response: unexpected element {element!r}")
        try:
            catalog.append(CatalogElement.from_dict(element))
        except (TypeError, ValueError) as e:
            raise DecodeFailed("error decoding the catalog response") from e
    return catalog


async def fetch_catalog(host: str, timeout: float = DEFAULT_TIMEOUT) -> Catalog:
    """
    Retrieve the product catalog once, before any session starts.

    Raises FetchFailed on transport errors or a non-200 status and
    DecodeFailed on a malformed body.
    """
    url = f"{normalize_host(host)}/catalogue"

    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise FetchFailed(f"response error: {response.status} {response.reason or ''}".rstrip())
                body = await response.read()
        except TRANSPORT_ERRORS as e:
            raise FetchFailed("error retrieving the catalog") from e

    try:
        data = json.loads(body)
    except ValueError as e:
        raise DecodeFailed("error decoding the catalog response") from e

    return decode_catalog(data)
