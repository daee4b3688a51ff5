"""
REST views for chat API.

This module provides the HTTP surface next to the realtime socket:
- ConversationMessagesView: Cursor-paginated history with one peer
- ConversationReadView: Mark everything from a peer as read
- UserPresenceView: Privacy-aware presence of a user
- ContactListView / ContactDetailView: Contact list
- BlockListView / BlockDetailView: Block list

URL Structure:
    /api/v1/chat/conversations/{peer_id}/messages/   GET
    /api/v1/chat/conversations/{peer_id}/read/       POST
    /api/v1/chat/presence/{user_id}/                 GET
    /api/v1/chat/contacts/                           GET, POST
    /api/v1/chat/contacts/{user_id}/                 DELETE
    /api/v1/chat/blocks/                             GET, POST
    /api/v1/chat/blocks/{user_id}/                   DELETE

Design Decisions:
    - Domain rules live in chat.services; views translate exceptions
      into HTTP errors with exc.to_dict()
    - Operations that notify live connections (delivered on fetch, read
      receipts, presence) go through the RealtimeHub so REST and socket
      behave the same
"""

from __future__ import annotations

from asgiref.sync import async_to_sync
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from chat.pagination import MessageCursorPagination
from chat.realtime.hub import get_hub
from chat.serializers import (
    BlockSerializer,
    ContactSerializer,
    MessageSerializer,
    PresenceSerializer,
    UserReferenceSerializer,
)
from chat.services import MessageStore, RelationshipService
from core.exceptions import (
    BaseApplicationError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)

ERROR_STATUS = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (ExternalServiceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(exc: BaseApplicationError) -> Response:
    """Response for a domain exception, with its to_dict() body."""
    for exc_class, http_status in ERROR_STATUS:
        if isinstance(exc, exc_class):
            return Response(exc.to_dict(), status=http_status)
    return Response(exc.to_dict(), status=status.HTTP_400_BAD_REQUEST)


PEER_PARAMETER = OpenApiParameter(
    name="peer_id",
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description="ID of the other user in the conversation",
)
USER_PARAMETER = OpenApiParameter(
    name="user_id",
    type=OpenApiTypes.INT,
    location=OpenApiParameter.PATH,
    description="ID of the user",
)


# =============================================================================
# Conversation Views
# =============================================================================


class ConversationMessagesView(APIView):
    """
    Message history with one peer.

    GET /api/v1/chat/conversations/{peer_id}/messages/?cursor=X&page_size=N

    Messages addressed to the requester that were still "sent" become
    "delivered" once returned here, and their senders are told.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_conversation_messages",
        summary="List conversation messages",
        description=(
            "Cursor-paginated messages exchanged with a peer, oldest first. "
            "Messages deleted for everyone or hidden by the requester are excluded."
        ),
        parameters=[PEER_PARAMETER],
        responses={
            200: MessageSerializer(many=True),
            404: OpenApiResponse(description="Peer not found"),
        },
        tags=["Chat - Messages"],
    )
    def get(self, request, peer_id):
        try:
            RelationshipService.get_peer(peer_id)
        except NotFoundError as e:
            return error_response(e)

        queryset = MessageStore.conversation_queryset(request.user.pk, peer_id)
        paginator = MessageCursorPagination()
        page = paginator.paginate_queryset(queryset, request, view=self)
        data = MessageSerializer(page, many=True, context={"request": request}).data

        async_to_sync(get_hub().router.acknowledge_fetched)(request.user.pk, page)
        return paginator.get_paginated_response(data)


class ConversationReadView(APIView):
    """
    Mark every unread message from a peer as read.

    POST /api/v1/chat/conversations/{peer_id}/read/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        description=(
            "Marks all messages received from the peer as read. The sender's "
            "live connections are notified unless the requester disabled read receipts."
        ),
        parameters=[PEER_PARAMETER],
        request=None,
        responses={
            200: OpenApiResponse(description="IDs of messages that became read"),
            404: OpenApiResponse(description="Peer not found"),
            503: OpenApiResponse(description="Message store unavailable"),
        },
        tags=["Chat - Messages"],
    )
    def post(self, request, peer_id):
        try:
            RelationshipService.get_peer(peer_id)
            changed = async_to_sync(get_hub().receipts.mark_conversation_read)(
                request.user.pk, peer_id
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response({"message_ids": changed, "count": len(changed)})


# =============================================================================
# Presence Views
# =============================================================================


class UserPresenceView(APIView):
    """
    Presence of one user as the requester may see it.

    GET /api/v1/chat/presence/{user_id}/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_user_presence",
        summary="Get user presence",
        description=(
            "Online state and last-seen time of a user. Both are hidden "
            "(visible=false) when the user's privacy settings or a block forbid it."
        ),
        parameters=[USER_PARAMETER],
        responses={
            200: PresenceSerializer,
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Presence"],
    )
    def get(self, request, user_id):
        try:
            presence = async_to_sync(get_hub().presence.get_presence)(
                request.user.pk, user_id
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(PresenceSerializer(presence).data)


# =============================================================================
# Contact Views
# =============================================================================


class ContactListView(APIView):
    """
    The requester's contact list.

    GET  /api/v1/chat/contacts/
    POST /api/v1/chat/contacts/   {"user_id": 2}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_contacts",
        summary="List contacts",
        responses={200: ContactSerializer(many=True)},
        tags=["Chat - Contacts"],
    )
    def get(self, request):
        contacts = RelationshipService.list_contacts(request.user)
        return Response(ContactSerializer(contacts, many=True).data)

    @extend_schema(
        operation_id="add_contact",
        summary="Add contact",
        description="Adds a user to the contact list. Adding an existing contact is a no-op.",
        request=UserReferenceSerializer,
        responses={
            201: ContactSerializer,
            400: OpenApiResponse(description="Cannot add yourself"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Contacts"],
    )
    def post(self, request):
        serializer = UserReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            contact = RelationshipService.add_contact(
                request.user, serializer.validated_data["user_id"]
            )
        except BaseApplicationError as e:
            return error_response(e)

        return Response(ContactSerializer(contact).data, status=status.HTTP_201_CREATED)


class ContactDetailView(APIView):
    """DELETE /api/v1/chat/contacts/{user_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="remove_contact",
        summary="Remove contact",
        parameters=[USER_PARAMETER],
        responses={
            204: OpenApiResponse(description="Contact removed"),
            404: OpenApiResponse(description="Not on the contact list"),
        },
        tags=["Chat - Contacts"],
    )
    def delete(self, request, user_id):
        if not RelationshipService.remove_contact(request.user, user_id):
            return Response(
                {"error": "Contact not found", "error_code": "CONTACT_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


# =============================================================================
# Block Views
# =============================================================================


class BlockListView(APIView):
    """
    The requester's block list.

    GET  /api/v1/chat/blocks/
    POST /api/v1/chat/blocks/   {"user_id": 2}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_blocks",
        summary="List blocked users",
        responses={200: BlockSerializer(many=True)},
        tags=["Chat - Blocks"],
    )
    def get(self, request):
        blocks = RelationshipService.list_blocks(request.user)
        return Response(BlockSerializer(blocks, many=True).data)

    @extend_schema(
        operation_id="block_user",
        summary="Block user",
        description=(
            "Blocks a user. Messages stop in both directions and presence is "
            "hidden both ways. Blocking an already blocked user is a no-op."
        ),
        request=UserReferenceSerializer,
        responses={
            201: BlockSerializer,
            400: OpenApiResponse(description="Cannot block yourself"),
            404: OpenApiResponse(description="User not found"),
        },
        tags=["Chat - Blocks"],
    )
    def post(self, request):
        serializer = UserReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            block = RelationshipService.block(request.user, serializer.validated_data["user_id"])
        except BaseApplicationError as e:
            return error_response(e)

        return Response(BlockSerializer(block).data, status=status.HTTP_201_CREATED)


class BlockDetailView(APIView):
    """DELETE /api/v1/chat/blocks/{user_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="unblock_user",
        summary="Unblock user",
        parameters=[USER_PARAMETER],
        responses={
            204: OpenApiResponse(description="User unblocked"),
            404: OpenApiResponse(description="User was not blocked"),
        },
        tags=["Chat - Blocks"],
    )
    def delete(self, request, user_id):
        if not RelationshipService.unblock(request.user, user_id):
            return Response(
                {"error": "Block not found", "error_code": "BLOCK_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(status=status.HTTP_204_NO_CONTENT)
