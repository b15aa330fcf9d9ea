"""
URL extraction: fetch a page and reduce it to readable text.
"""
import requests
from bs4 import BeautifulSoup

from citecast.config import settings
from citecast.core.errors import ExtractionError
from citecast.core.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; CitecastBot/1.0)"

# Page chrome that never carries article content
EXCLUDE_TAGS = ["script", "style", "noscript", "nav", "footer", "header", "aside", "form"]
CONTENT_SELECTORS = ["article", "main", "[role=main]", ".entry-content", ".post-content", "#content"]


def readable_text(html: str) -> str:
    """
    Title as a markdown heading, then byline, then the main content.

    The first matching content container wins; the whole body is used
    when none is present.
    """
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    byline_tag = soup.find("meta", attrs={"name": "author"})
    byline = byline_tag.get("content", "").strip() if byline_tag else ""

    for tag in EXCLUDE_TAGS:
        for element in soup.find_all(tag):
            element.decompose()

    container = None
    for selector in CONTENT_SELECTORS:
        container = soup.select_one(selector)
        if container:
            break
    if container is None:
        container = soup.body or soup

    blocks = [
        block.get_text(" ", strip=True)
        for block in container.find_all(["h1", "h2", "h3", "h4", "p", "li", "blockquote", "pre"])
    ]
    body = "\n\n".join(b for b in blocks if b) or container.get_text("\n", strip=True)

    parts = []
    if title:
        parts.append(f"# {title}")
    if byline:
        parts.append(f"By: {byline}")
    if body:
        parts.append(body)
    return "\n\n".join(parts).strip()


def fetch_url_text(url: str, timeout: int = None) -> str:
    try:
        response = requests.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=timeout or settings.fetch_timeout_seconds,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        raise ExtractionError(f"Failed to fetch URL: {e}") from e

    text = readable_text(response.text)
    logger.info("url_text_extracted", url=url, status=response.status_code, text_length=len(text))
    return text
