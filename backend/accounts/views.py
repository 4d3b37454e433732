from __future__ import annotations

from rest_framework import mixins, permissions, viewsets
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.views import TokenObtainPairView

from core.viewsets import TenantScopedQuerysetMixin

from .audit import log_audit_event
from .models import AuditLog, Client, User
from .permissions import IsClientAdmin, IsSuperAdmin, IsTenantUser, is_super_admin
from .serializers import (
    AuditLogSerializer,
    ClientSerializer,
    ClientTokenObtainPairSerializer,
    UserCreateSerializer,
    UserSerializer,
)


class ClientTokenObtainPairView(TokenObtainPairView):
    serializer_class = ClientTokenObtainPairSerializer


class MeView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user_data = UserSerializer(request.user).data
        client_id = getattr(request.user, "client_id", None)
        return Response(
            {"user": user_data, "client_id": str(client_id) if client_id else None}
        )


class ClientViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Client.objects.all().order_by("name")
    serializer_class = ClientSerializer
    permission_classes = [IsTenantUser]

    def get_permissions(self):  # noqa: D401 - DRF API
        """Only super admins create or edit clients."""

        if self.action in {"create", "update", "partial_update"}:
            return [IsSuperAdmin()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore[override]
        user = self.request.user
        if is_super_admin(user):
            return super().get_queryset()
        return self.queryset.filter(id=user.client_id)


class UserViewSet(
    TenantScopedQuerysetMixin,
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = User.objects.select_related("client").order_by("email")
    permission_classes = [IsClientAdmin]

    def get_serializer_class(self):
        if self.action == "create":
            return UserCreateSerializer
        return UserSerializer

    def get_queryset(self):  # type: ignore[override]
        return self.scope_queryset(super().get_queryset())

    def perform_create(self, serializer):
        created = serializer.save()
        if created.client is not None:
            log_audit_event(
                client=created.client,
                user=self.request.user,
                action="user_created",
                resource_type="user",
                resource_id=created.id,
                metadata={"role": created.role},
            )


class AuditLogViewSet(TenantScopedQuerysetMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    serializer_class = AuditLogSerializer
    permission_classes = [IsClientAdmin]

    def get_queryset(self):
        queryset = self.scope_queryset(
            AuditLog.objects.select_related("user").order_by("-created_at")
        )
        action = self.request.query_params.get("action")
        if action:
            queryset = queryset.filter(action=action)
        resource_type = self.request.query_params.get("resource_type")
        if resource_type:
            queryset = queryset.filter(resource_type=resource_type)
        return queryset
