"""Opaque cursors for offset-based pagination.

A cursor is base64 of the JSON envelope {"offset": <int>}. Decoding
never raises: a missing, malformed or foreign cursor yields offset 0 so
a client holding a stale cursor simply starts over.
"""

import base64
import binascii
import json
from typing import List, Optional, Sequence, TypeVar

from src.community.experience.models import Page


T = TypeVar("T")

MAX_PAGE_SIZE = 50


class PaginationCodec:
    """Encodes and decodes pagination cursors."""

    @staticmethod
    def encode(offset: int) -> Optional[str]:
        """Encode an offset; offsets of zero or less have no cursor."""
        if offset <= 0:
            return None
        payload = json.dumps({"offset": offset}, separators=(",", ":"))
        return base64.b64encode(payload.encode("utf-8")).decode("ascii")

    @staticmethod
    def decode(cursor: Optional[str]) -> int:
        """Decode a cursor to an offset, returning 0 for anything invalid."""
        if not cursor:
            return 0
        try:
            raw = base64.b64decode(cursor.encode("ascii"), validate=True)
            envelope = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError):
            return 0

        if not isinstance(envelope, dict):
            return 0
        offset = envelope.get("offset")
        # bool is an int subclass; {"offset": true} is not a real offset
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            return 0
        return offset

    @classmethod
    def next_cursor(
        cls,
        offset: int,
        returned: int,
        page_size: int,
        total: Optional[int] = None,
    ) -> Optional[str]:
        """Cursor for the page after one starting at offset.

        A cursor is only emitted for a full page. When the total is known
        it must also leave items unread, which avoids handing out a cursor
        to an empty page.
        """
        if returned < page_size:
            return None
        next_offset = offset + returned
        if total is not None and next_offset >= total:
            return None
        return cls.encode(next_offset)


def clamp_page_size(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_SIZE))


def paginate(items: Sequence[T], cursor: Optional[str], limit: int) -> Page[T]:
    """Slice an in-memory sequence into a page."""
    offset = PaginationCodec.decode(cursor)
    page_size = clamp_page_size(limit)
    window: List[T] = list(items[offset:offset + page_size])
    return Page(
        items=window,
        next_cursor=PaginationCodec.next_cursor(
            offset, len(window), page_size, total=len(items)
        ),
    )
