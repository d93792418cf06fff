"""
CDN URL builder for media assets.

Pure helpers: no state beyond the CDN base URL and no network access.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
from urllib.parse import quote

import httpx


DEFAULT_BREAKPOINTS = (320, 480, 768, 1024, 1280, 1920)


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_cdn_url(base_url: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Resolve ``path`` against ``base_url`` and append transform parameters.

    Parameters whose value is ``None`` are skipped; the rest keep the
    caller's order.
    """
    url = httpx.URL(base_url).join(path)
    for key, value in (params or {}).items():
        if value is None:
            continue
        url = url.copy_add_param(key, _render(value))
    return str(url)


def create_responsive_transforms(breakpoints: Sequence[int] = DEFAULT_BREAKPOINTS) -> List[Dict[str, Any]]:
    return [{"width": width, "format": "webp", "quality": 85} for width in breakpoints]


def generate_srcset(base_url: str, media_path: str, transforms: Sequence[Mapping[str, Any]]) -> str:
    return ", ".join(
        f"{build_cdn_url(base_url, media_path, transform)} {transform['width']}w"
        for transform in transforms
    )


class CdnUrlBuilder:
    """Derived media URLs.

    ``base_url`` may be a callable, resolved on every call so the builder
    follows configuration updates on the client it was built from.
    """

    def __init__(self, base_url: Union[str, Callable[[], str]]):
        self._base_url = base_url

    @property
    def base_url(self) -> str:
        return self._base_url() if callable(self._base_url) else self._base_url

    def media_path(self, media_id: str) -> str:
        return f"/media/{quote(media_id, safe='')}"

    def media_url(self, media_id: str, transform: Optional[Mapping[str, Any]] = None) -> str:
        return build_cdn_url(self.base_url, self.media_path(media_id), transform)

    def thumbnail_url(self, media_id: str, width: int = 150, height: int = 150) -> str:
        return self.media_url(media_id, {
            "width": width,
            "height": height,
            "crop": "fill",
            "format": "webp",
        })

    def responsive_urls(self, media_id: str, breakpoints: Sequence[int] = DEFAULT_BREAKPOINTS) -> Dict[int, str]:
        return {
            transform["width"]: self.media_url(media_id, transform)
            for transform in create_responsive_transforms(breakpoints)
        }

    def srcset(self, media_id: str, breakpoints: Sequence[int] = DEFAULT_BREAKPOINTS) -> str:
        return generate_srcset(self.base_url, self.media_path(media_id), create_responsive_transforms(breakpoints))
