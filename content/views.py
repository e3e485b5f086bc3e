import logging
from collections import OrderedDict

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from content.authentication import AdminCredentialAuthentication, verify_admin
from content.exceptions import StorageFailure
from content.serializers import (
    ChangePasswordSerializer,
    ContactSerializer,
    ContentEntrySerializer,
    ContentItemSerializer,
    ContentUpdateSerializer,
    LoginSerializer,
)
from content.store import ContentStore

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


def envelope(data=None, message=None, status_code=status.HTTP_200_OK):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return Response(body, status=status_code)


def _missing_fields(raw_item):
    return any(raw_item.get(name) is None for name in ("section", "key", "value"))


def group_by_section(entries):
    """Fold entries into ``{section: {key: value}}`` keeping first-seen order."""
    grouped = OrderedDict()
    for entry in entries:
        grouped.setdefault(entry.section, OrderedDict())[entry.key] = entry.value
    return grouped


class StoreAPIView(APIView):
    """
    Base view bound to an explicit ``ContentStore``.

    The URLconf supplies the store through ``as_view(store=...)``; the same
    store backs request authentication.
    """

    store = None

    def get_store(self) -> ContentStore:
        if self.store is None:
            raise ImproperlyConfigured(
                f"{self.__class__.__name__} needs a store; use as_view(store=ContentStore())"
            )
        return self.store

    def get_authenticators(self):
        return [AdminCredentialAuthentication(store=self.get_store())]


class ApiIndexView(APIView):
    """Describe the service and where its endpoints live."""

    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="api_index",
        summary="API index",
        responses={200: OpenApiResponse(description="Service name, version and endpoint map")},
        tags=["Health & Monitoring"],
    )
    def get(self, request):
        return Response({
            "message": "Click2Leads API Server",
            "version": API_VERSION,
            "endpoints": {
                "health": "/api/health/",
                "contact": "/api/contact/",
                "auth": {
                    "login": "/api/admin/login/",
                    "changePassword": "/api/admin/change-password/",
                },
                "content": {
                    "get": "/api/content/<section>/",
                    "entries": "/api/content/entries/",
                    "update": "/api/content/",
                },
                "schema": "/api/schema/",
            },
        })


class HealthCheckView(StoreAPIView):
    """Health check including database reachability."""

    permission_classes = [AllowAny]

    def get_authenticators(self):
        return []

    @extend_schema(
        operation_id="health_check",
        summary="Health check",
        description="Returns service status and whether the content database answers.",
        responses={
            200: OpenApiResponse(description="Service and database are healthy"),
            503: OpenApiResponse(description="Database is unreachable"),
        },
        tags=["Health & Monitoring"],
    )
    def get(self, request):
        try:
            self.get_store().ping()
            database = "healthy"
        except StorageFailure as exc:
            logger.warning(f"Health check database ping failed: {exc}")
            database = "unhealthy"

        healthy = database == "healthy"
        return Response(
            {
                "status": "healthy" if healthy else "degraded",
                "message": "Click2Leads API is running",
                "timestamp": timezone.now().isoformat(),
                "environment": getattr(settings, "ENVIRONMENT", "development"),
                "version": API_VERSION,
                "checks": {"database": database},
            },
            status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        )


class ContentView(StoreAPIView):
    """Read all page copy, or write a batch of updates (admin only)."""

    def get_permissions(self):
        if self.request.method == "POST":
            return [IsAuthenticated()]
        return [AllowAny()]

    @extend_schema(
        operation_id="list_content",
        summary="Read all page copy",
        description="Returns every content value grouped as {section: {key: value}}.",
        responses={200: OpenApiResponse(description="Content grouped by section")},
        tags=["Content"],
    )
    def get(self, request):
        entries = self.get_store().list_content()
        return envelope(group_by_section(entries))

    @extend_schema(
        operation_id="update_content",
        summary="Update page copy",
        description=(
            "Insert or replace each {section, key, value} in the batch. Items are applied "
            "independently: an invalid or failed item is reported in its result and does "
            "not stop the others."
        ),
        request=ContentUpdateSerializer,
        responses={
            200: OpenApiResponse(description="Per-item results"),
            400: OpenApiResponse(description="Missing or oversized updates array"),
            401: OpenApiResponse(description="Admin credentials required"),
        },
        tags=["Content"],
    )
    def post(self, request):
        serializer = ContentUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        store = self.get_store()
        results = []
        for raw_item in serializer.validated_data["updates"]:
            item = ContentItemSerializer(data=raw_item)
            if not item.is_valid():
                results.append({
                    "section": raw_item.get("section"),
                    "key": raw_item.get("key"),
                    "success": False,
                    "error": "Missing required fields" if _missing_fields(raw_item) else "Invalid fields",
                    "errors": item.errors,
                })
                continue

            section = item.validated_data["section"]
            key = item.validated_data["key"]
            try:
                outcome = store.upsert_content(section, key, item.validated_data["value"])
            except StorageFailure:
                results.append({
                    "section": section,
                    "key": key,
                    "success": False,
                    "error": "Failed to save content",
                })
                continue
            results.append({
                "section": section,
                "key": key,
                "success": True,
                "id": outcome.id,
                "changes": outcome.changes,
            })

        logger.info(
            f"Admin '{request.user.username}' applied "
            f"{sum(1 for result in results if result['success'])}/{len(results)} content updates"
        )
        return envelope(results)


class ContentSectionView(StoreAPIView):
    """Read the copy of a single section."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="read_content_section",
        summary="Read one section's copy",
        parameters=[
            OpenApiParameter(
                name="section",
                type=str,
                location=OpenApiParameter.PATH,
                description="Section name, e.g. hero",
            ),
        ],
        responses={200: OpenApiResponse(description="{key: value} for the section; empty when unknown")},
        tags=["Content"],
    )
    def get(self, request, section: str):
        entries = self.get_store().list_content(section)
        return envelope(group_by_section(entries).get(section, {}))


class ContentEntriesView(StoreAPIView):
    """Raw entries with their timestamps, for the content editor."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="list_content_entries",
        summary="List content entries",
        parameters=[
            OpenApiParameter(
                name="section",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Only return entries in this section",
                required=False,
            ),
        ],
        responses={200: OpenApiResponse(response=ContentEntrySerializer(many=True))},
        tags=["Content"],
    )
    def get(self, request):
        section = request.query_params.get("section") or None
        entries = self.get_store().list_content(section)
        return envelope(ContentEntrySerializer(entries, many=True).data)


class AdminLoginView(StoreAPIView):
    """Check an editor's username and password."""

    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="admin_login",
        summary="Verify admin credentials",
        request=LoginSerializer,
        responses={
            200: OpenApiResponse(description="Credentials are valid"),
            401: OpenApiResponse(description="Invalid credentials"),
        },
        tags=["Admin"],
    )
    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        username = serializer.validated_data["username"]
        principal = verify_admin(self.get_store(), username, serializer.validated_data["password"])
        if principal is None:
            logger.warning(f"Failed admin login for '{username}'")
            raise AuthenticationFailed("Invalid credentials")

        logger.info(f"Admin '{principal.username}' logged in")
        return envelope({"id": principal.id, "username": principal.username})


class ChangePasswordView(StoreAPIView):
    """Replace the authenticated editor's password."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="admin_change_password",
        summary="Change admin password",
        request=ChangePasswordSerializer,
        responses={
            200: OpenApiResponse(description="Password updated"),
            400: OpenApiResponse(description="New password too weak"),
            401: OpenApiResponse(description="Not authenticated or current password incorrect"),
        },
        tags=["Admin"],
    )
    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        store = self.get_store()
        username = request.user.username
        if verify_admin(store, username, serializer.validated_data["current_password"]) is None:
            raise AuthenticationFailed("Current password is incorrect")

        changes = store.update_credential_password(username, serializer.validated_data["new_password"])
        if not changes:
            raise AuthenticationFailed("Account no longer exists")

        return envelope(message="Password updated successfully")


class ContactView(APIView):
    """Accept an enquiry from the contact form."""

    authentication_classes = []
    permission_classes = [AllowAny]

    @extend_schema(
        operation_id="submit_contact",
        summary="Submit the contact form",
        request=ContactSerializer,
        responses={
            200: OpenApiResponse(description="Enquiry accepted"),
            400: OpenApiResponse(description="Missing or invalid fields"),
        },
        tags=["Contact"],
    )
    def post(self, request):
        serializer = ContactSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        data = serializer.validated_data
        logger.info(
            f"Contact form submission from {data['name']} <{data['email']}>"
            f"{' (' + data['company'] + ')' if data.get('company') else ''}"
        )
        return envelope(message="Thank you for contacting us. We will get back to you soon!")
