"""
Fetching HTML pages from user-supplied URLs

Every hop (the first URL and each redirect target) is checked before it is
requested: the scheme must be http or https and the host must not resolve to
a private, loopback, link-local, multicast or reserved address.
"""
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from lingoforge.config import URL_FETCH_MAX_BYTES, URL_FETCH_MAX_REDIRECTS, URL_FETCH_TIMEOUT
from lingoforge.core.exceptions import UrlFetchError

logger = logging.getLogger(__name__)

FETCH_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (compatible; lingoforge/0.1)',
    'Accept': 'text/html,application/xhtml+xml,*/*',
}
ALLOWED_CONTENT_TYPES = ('text/html', 'application/xhtml+xml', 'text/plain')
PRIVATE_ADDRESS_MESSAGE = "URL resolves to a private/reserved IP address"


def is_private_ip(ip: str) -> bool:
    """
    Check whether a server-side fetch must not reach this address

    IPv4-mapped IPv6 addresses are judged by their IPv4 part. Anything that
    does not parse as an address counts as private.
    """
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return True
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return (address.is_private or address.is_loopback or address.is_link_local
            or address.is_multicast or address.is_reserved or address.is_unspecified)


def resolve_host(hostname: str) -> List[str]:
    """All addresses the hostname resolves to"""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as e:
        raise UrlFetchError(f"Failed to resolve hostname: {hostname}") from e
    return sorted({info[4][0] for info in infos})


def validate_url(url: str) -> None:
    """
    Reject URLs a server-side fetch must not follow

    Raises:
        UrlFetchError: Bad scheme, missing host, or a private address
    """
    parts = urlsplit(url)
    if parts.scheme not in ('http', 'https'):
        raise UrlFetchError("Only HTTP and HTTPS URLs are supported", url)
    hostname = parts.hostname
    if not hostname:
        raise UrlFetchError("Invalid URL", url)

    try:
        ipaddress.ip_address(hostname)
        addresses = [hostname]
    except ValueError:
        addresses = resolve_host(hostname)
    if not addresses:
        raise UrlFetchError("Hostname did not resolve to any IP address", url)
    if any(is_private_ip(address) for address in addresses):
        raise UrlFetchError(PRIVATE_ADDRESS_MESSAGE, url)


@dataclass
class FetchedPage:
    html: str
    final_url: str
    content_type: str

    @property
    def file_name(self) -> str:
        """Upload name taken from the last path segment of the final URL"""
        name = urlsplit(self.final_url).path.rstrip('/').split('/')[-1]
        if not name:
            return "index.html"
        return name if name.lower().endswith(('.html', '.htm')) else f"{name}.html"


def _read_limited(response: httpx.Response, max_bytes: int) -> bytes:
    chunks = []
    total = 0
    for chunk in response.iter_bytes():
        total += len(chunk)
        if total > max_bytes:
            raise UrlFetchError(f"Response too large (max {max_bytes} bytes)", str(response.url))
        chunks.append(chunk)
    return b"".join(chunks)


def _decode(raw: bytes, encoding: Optional[str]) -> str:
    try:
        return raw.decode(encoding or 'utf-8', errors='replace')
    except LookupError:
        return raw.decode('utf-8', errors='replace')


def fetch_html(url: str, transport: Optional[httpx.BaseTransport] = None,
               timeout: float = URL_FETCH_TIMEOUT, max_bytes: int = URL_FETCH_MAX_BYTES) -> FetchedPage:
    """
    Download an HTML page, following redirects one validated hop at a time

    Args:
        url: Page to fetch
        transport: Optional httpx transport (tests pass an httpx.MockTransport)
        timeout: Seconds per request
        max_bytes: Largest accepted body

    Returns:
        FetchedPage with the decoded HTML and the URL it was finally served from

    Raises:
        UrlFetchError: For every refusal or failure, with a user-facing message
    """
    current_url = (url or '').strip()
    validate_url(current_url)

    with httpx.Client(headers=FETCH_HEADERS, timeout=timeout, follow_redirects=False,
                      transport=transport) as client:
        for _ in range(URL_FETCH_MAX_REDIRECTS + 1):
            try:
                with client.stream('GET', current_url) as response:
                    if 300 <= response.status_code < 400:
                        location = response.headers.get('location')
                        if not location:
                            raise UrlFetchError("Redirect response missing Location header", current_url)
                        next_url = urljoin(current_url, location)
                        validate_url(next_url)
                        logger.debug(f"Following redirect {current_url} -> {next_url}")
                        current_url = next_url
                        continue

                    if not response.is_success:
                        raise UrlFetchError(
                            f"Failed to fetch URL: {response.status_code} {response.reason_phrase}", current_url)
                    content_type = response.headers.get('content-type', '')
                    if not any(allowed in content_type for allowed in ALLOWED_CONTENT_TYPES):
                        raise UrlFetchError("URL does not serve HTML content", current_url)
                    raw = _read_limited(response, max_bytes)
                    encoding = response.charset_encoding
            except httpx.HTTPError as e:
                raise UrlFetchError(f"Failed to fetch URL: {e}", current_url) from e

            html = _decode(raw, encoding)
            if not html.strip():
                raise UrlFetchError("The fetched page has no content", current_url)
            logger.info(f"Fetched {len(raw)} bytes from {current_url}")
            return FetchedPage(html=html, final_url=current_url, content_type=content_type)

    raise UrlFetchError("Too many redirects", url)
