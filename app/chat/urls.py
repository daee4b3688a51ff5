"""
URL configuration for chat API.

URL Structure:
    Conversations:
        /conversations/{peer_id}/messages/   GET
        /conversations/{peer_id}/read/       POST

    Presence:
        /presence/{user_id}/                 GET

    Contacts:
        /contacts/                           GET, POST
        /contacts/{user_id}/                 DELETE

    Blocks:
        /blocks/                             GET, POST
        /blocks/{user_id}/                   DELETE

All URLs are prefixed with /api/v1/chat/ in the main URL configuration.
Realtime traffic uses the socket in routing.py.
"""

from django.urls import path

from chat.views import (
    BlockDetailView,
    BlockListView,
    ContactDetailView,
    ContactListView,
    ConversationMessagesView,
    ConversationReadView,
    UserPresenceView,
)

app_name = "chat"

urlpatterns = [
    path(
        "conversations/<int:peer_id>/messages/",
        ConversationMessagesView.as_view(),
        name="conversation-messages",
    ),
    path(
        "conversations/<int:peer_id>/read/",
        ConversationReadView.as_view(),
        name="conversation-read",
    ),
    path("presence/<int:user_id>/", UserPresenceView.as_view(), name="user-presence"),
    path("contacts/", ContactListView.as_view(), name="contact-list"),
    path("contacts/<int:user_id>/", ContactDetailView.as_view(), name="contact-detail"),
    path("blocks/", BlockListView.as_view(), name="block-list"),
    path("blocks/<int:user_id>/", BlockDetailView.as_view(), name="block-detail"),
]
