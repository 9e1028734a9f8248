"""Metadata extraction from tool websites."""

from typing import Dict, Optional
from urllib.parse import urljoin, urlparse

import requests
from bs4 import BeautifulSoup

from .exceptions import ExternalServiceError, ValidationError
from .logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 VaultXBot"
MAX_BODY_BYTES = 2 * 1024 * 1024


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    return (tag.get("content") or "").strip() if tag else ""


def _icon_href(soup: BeautifulSoup) -> str:
    for link in soup.find_all("link", href=True):
        rel = [value.lower() for value in (link.get("rel") or [])]
        if "icon" in rel:
            return link["href"].strip()
    return ""


def validate_website_url(url: str) -> str:
    """Return the stripped URL or raise ValidationError if it is not http(s)."""
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Website must be a valid http(s) URL", field="website")
    return url


def extract_metadata(html: str, url: str) -> Dict[str, str]:
    """
    Pull a tool suggestion out of a page's HTML.

    The name falls back to the URL host; relative image and icon links are
    resolved against the page URL.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta_content(soup, property="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()
    description = _meta_content(soup, property="og:description") or _meta_content(soup, name="description")
    image = _meta_content(soup, property="og:image")
    favicon = _icon_href(soup)

    return {
        "name": title or urlparse(url).netloc,
        "website": url,
        "description": description,
        "og_image_url": urljoin(url, image) if image else "",
        "favicon_url": urljoin(url, favicon) if favicon else "",
    }


class WebsiteEnricher:
    """Fetches a website and extracts listing metadata from it."""

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def enrich(self, url: str) -> Dict[str, str]:
        """
        Fetch `url` and return suggested tool fields.

        Raises:
            ValidationError: If the URL is not http(s)
            ExternalServiceError: If the site cannot be fetched
        """
        url = validate_website_url(url)
        logger.info(f"Enriching tool metadata from {url}")

        try:
            response = self._session.get(url, headers={"User-Agent": USER_AGENT}, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch {url}: {str(e)}")
            raise ExternalServiceError(f"Failed to fetch {url}: {str(e)}", service="website")

        if not response.ok:
            raise ExternalServiceError(
                f"Website responded with status {response.status_code}",
                service="website",
                upstream_status=response.status_code
            )

        html = response.text[:MAX_BODY_BYTES]
        return extract_metadata(html, url)
