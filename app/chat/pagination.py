"""
Pagination classes for chat API.

Cursor-based pagination keeps pages stable while new messages arrive
and needs no offset calculation.
"""

from rest_framework.pagination import CursorPagination

from chat.constants import MESSAGE_CONFIG


class MessageCursorPagination(CursorPagination):
    """
    Cursor pagination for conversation history.

    Orders messages oldest-first for natural chat reading.
    Uses (created_at, id) for stable cursor position.

    Default: 50 messages per page
    Maximum: MESSAGE_CONFIG.MAX_HISTORY_PAGE_SIZE

    Query parameters:
        cursor: Encoded cursor for position
        page_size: Number of messages (optional override)
    """

    page_size = 50
    max_page_size = MESSAGE_CONFIG.MAX_HISTORY_PAGE_SIZE
    page_size_query_param = "page_size"
    ordering = ("created_at", "id")
    cursor_query_param = "cursor"
