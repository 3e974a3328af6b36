"""Fetch a linked web page and reduce it to text the model can read.

Activity notes are often pasted alongside a link to an event or venue page.
The page is fetched once under a short timeout; any failure leaves the
request as it was, so extraction continues from the note alone.
"""

import html
import logging
import re

import httpx

from mealkit.extract.models import ActivityRequest, PageContent

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10.0
PAGE_TEXT_MAX = 2000

USER_AGENT = "mealkit/0.1 (activity page reader)"

_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")
_TITLE_RE = re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE)


def _meta_re(attr: str, name: str) -> re.Pattern:
    return re.compile(
        rf'<meta[^>]*{attr}="{re.escape(name)}"[^>]*content="([^"]*)"[^>]*>',
        re.IGNORECASE,
    )


_OG_TITLE_RE = _meta_re("property", "og:title")
_OG_DESCRIPTION_RE = _meta_re("property", "og:description")
_OG_IMAGE_RE = _meta_re("property", "og:image")
_META_DESCRIPTION_RE = _meta_re("name", "description")


def extract_page_text(markup: str, limit: int = PAGE_TEXT_MAX) -> str:
    """Strip scripts, styles and tags, decode entities, collapse whitespace.

    Text longer than ``limit`` is cut and marked with "...".
    """
    text = _SCRIPT_RE.sub("", markup)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    text = _SPACE_RE.sub(" ", text).strip()
    if len(text) > limit:
        text = text[:limit] + "..."
    return text


def _first(markup: str, *patterns: re.Pattern) -> str | None:
    for pattern in patterns:
        m = pattern.search(markup)
        if m and m.group(1).strip():
            return html.unescape(m.group(1).strip())
    return None


def extract_page_metadata(markup: str) -> dict[str, str]:
    """OpenGraph title/description/image, falling back to <title> and meta description."""
    found = {
        "title": _first(markup, _OG_TITLE_RE, _TITLE_RE),
        "description": _first(markup, _OG_DESCRIPTION_RE, _META_DESCRIPTION_RE),
        "image": _first(markup, _OG_IMAGE_RE),
    }
    return {key: value for key, value in found.items() if value}


def parse_page(url: str, markup: str) -> PageContent:
    return PageContent(url=url, text=extract_page_text(markup), **extract_page_metadata(markup))


def fetch_page(
    url: str,
    client: httpx.Client | None = None,
    timeout: float = FETCH_TIMEOUT_SECONDS,
) -> PageContent | None:
    """Download ``url`` and parse it, or return None if it cannot be read.

    Args:
        url: An http(s) page address
        client: Optional pre-configured client (tests pass one with a mock transport)
        timeout: Seconds allowed for the whole request
    """
    headers = {"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"}
    try:
        if client is None:
            with httpx.Client(follow_redirects=True, timeout=timeout) as owned:
                response = owned.get(url, headers=headers)
        else:
            response = client.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except httpx.TimeoutException:
        logger.warning(f"Timed out fetching {url}; continuing with the note text only")
        return None
    except httpx.HTTPStatusError as e:
        logger.warning(f"Failed to fetch {url}: HTTP {e.response.status_code}; continuing with the note text only")
        return None
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch {url}: {e}; continuing with the note text only")
        return None

    page = parse_page(str(response.url), response.text)
    logger.debug(f"Read {len(page.text)} chars from {page.url}")
    return page


def attach_page(request: ActivityRequest, client: httpx.Client | None = None) -> ActivityRequest:
    """Return ``request`` with the linked page's content, when it can be fetched."""
    if not request.url or request.page is not None:
        return request
    url = request.url.strip()
    if not url.lower().startswith(("http://", "https://")):
        logger.debug(f"Not fetching non-http link {url!r}")
        return request
    page = fetch_page(url, client=client)
    if page is None:
        return request
    return request.model_copy(update={"page": page})
