"""Best-effort extraction of media details from message content."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

MXC_PREFIX = "mxc://"
_IMG_SRC = re.compile(r"""<img\b[^>]*\bsrc\s*=\s*["']([^"']+)["']""", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class MediaReference:
    domain: str
    media_id: str

    def __str__(self) -> str:
        return f"{MXC_PREFIX}{self.domain}/{self.media_id}"


@dataclass(frozen=True, slots=True)
class MediaInfo:
    reference: Optional[MediaReference]
    mimetype: Optional[str]

    def describe(self) -> str:
        parts = []
        if self.reference is not None:
            parts.append(f"media {self.reference}")
        if self.mimetype:
            parts.append(f"mimetype {self.mimetype}")
        return ", ".join(parts) if parts else "no media details"


def parse_mxc(url: Optional[str]) -> Optional[MediaReference]:
    """Split ``mxc://<domain>/<media id>`` into its parts, or return None."""
    if not isinstance(url, str) or not url.startswith(MXC_PREFIX):
        return None
    domain, sep, media_id = url[len(MXC_PREFIX):].partition("/")
    if not sep or not domain or not media_id or "/" in media_id:
        return None
    return MediaReference(domain=domain, media_id=media_id)


def extract_media_info(content: Mapping[str, Any]) -> MediaInfo:
    """Find the media reference and mimetype of a message, if it has any.

    Looks at ``url`` (plain uploads), ``file.url`` (encrypted uploads) and
    finally the first ``<img src>`` in the HTML body.
    """
    url = content.get("url")
    encrypted = content.get("file")
    if not isinstance(url, str) and isinstance(encrypted, dict):
        url = encrypted.get("url")
    if not isinstance(url, str):
        formatted = content.get("formatted_body")
        match = _IMG_SRC.search(formatted) if isinstance(formatted, str) else None
        url = match.group(1) if match else None

    info = content.get("info")
    mimetype = info.get("mimetype") if isinstance(info, dict) else None
    return MediaInfo(
        reference=parse_mxc(url),
        mimetype=mimetype if isinstance(mimetype, str) and mimetype else None,
    )
