"""HTML scraping for Chevereto sites.

Chevereto has no list or login API, so the auth token, album entries and pagination cursor are
pulled out of the rendered pages with regular expressions.
"""

import json
import re
from urllib.parse import unquote

import httpx
from pydantic import BaseModel, ValidationError

from up2b.core.exceptions import ExtractionError
from up2b.schemas.images import ImageItem

AUTH_TOKEN_RE = re.compile(r'PF\.obj\.config\.auth_token = "([a-f0-9]{40})";')
LOGIN_ERROR_RE = re.compile(r'PF\.fn\.growl\.expirable\("(.+?)"\)')
IMAGE_OBJECT_RE = re.compile(r"data-object='(.+?)'")
IMAGE_COUNT_RE = re.compile(r'<b data-text="image-count">(\d+)</b>')
SEEK_RE = re.compile(r'&seek=(.+?)"')


class CheveretoThumb(BaseModel):
    url: str


class CheveretoImage(BaseModel):
    name: str
    url: str
    thumb: CheveretoThumb

    def to_item(self) -> ImageItem:
        return ImageItem(url=self.url, deleted_id=self.name, thumb=self.thumb.url)


def extract_token(html: str) -> str | None:
    match = AUTH_TOKEN_RE.search(html)
    return match.group(1) if match else None


def extract_login_error(html: str) -> str | None:
    match = LOGIN_ERROR_RE.search(html)
    return match.group(1) if match else None


def extract_items(html: str) -> list[ImageItem]:
    items = []
    for quoted in IMAGE_OBJECT_RE.findall(html):
        try:
            image = CheveretoImage.model_validate(json.loads(unquote(quoted)))
        except (ValueError, ValidationError) as e:
            raise ExtractionError(f"invalid image object in album page: {e}") from e
        items.append(image.to_item())
    return items


def extract_image_count(html: str) -> int | None:
    match = IMAGE_COUNT_RE.search(html)
    return int(match.group(1)) if match else None


def extract_continuation(html: str) -> str | None:
    match = SEEK_RE.search(html)
    return match.group(1) if match else None


def first_cookie(response: httpx.Response) -> str | None:
    """The ``name=value`` part of the first ``Set-Cookie`` header, without its attributes."""
    cookies = response.headers.get_list("set-cookie")
    if not cookies:
        return None
    return cookies[0].split(";", 1)[0].strip()
