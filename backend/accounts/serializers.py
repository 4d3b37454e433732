from __future__ import annotations

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import AuditLog, Client, User


class ClientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Client
        fields = ["id", "name", "currency", "logo", "is_active", "created_at", "updated_at"]
        read_only_fields = ["id", "created_at", "updated_at"]


class UserSerializer(serializers.ModelSerializer):
    client_id = serializers.UUIDField(read_only=True, allow_null=True)
    client_name = serializers.CharField(source="client.name", read_only=True, default=None)
    is_super_admin = serializers.BooleanField(read_only=True)

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "client_id",
            "client_name",
            "is_super_admin",
            "is_active",
        ]
        read_only_fields = fields


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    client = serializers.PrimaryKeyRelatedField(
        queryset=Client.objects.all(), required=False, allow_null=True
    )

    class Meta:
        model = User
        fields = ["id", "username", "email", "first_name", "last_name", "role", "client", "password"]
        read_only_fields = ["id"]
        extra_kwargs = {"username": {"required": False}}

    def validate(self, attrs):
        actor = self.context["request"].user
        role = attrs.get("role", User.CS)
        if actor.is_super_admin:
            if role != User.SUPER_ADMIN and attrs.get("client") is None:
                raise serializers.ValidationError({"client": "Client users need a client."})
            if role == User.SUPER_ADMIN:
                attrs["client"] = None
            return attrs

        if role == User.SUPER_ADMIN:
            raise serializers.ValidationError({"role": "Only super admins can grant this role."})
        client = attrs.get("client")
        if client is not None and client.id != actor.client_id:
            raise serializers.ValidationError({"client": "Users can only be added to your own client."})
        attrs["client"] = actor.client
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        user = User(**validated_data)
        if not user.username:
            user.username = user.email or str(user.id)
        user.set_password(password)
        user.save()
        return user

    def to_representation(self, instance):  # type: ignore[override]
        return UserSerializer(instance, context=self.context).data


class ClientTokenObtainPairSerializer(TokenObtainPairSerializer):
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token["client_id"] = str(user.client_id) if user.client_id else None
        token["role"] = User.SUPER_ADMIN if user.is_super_admin else user.role
        return token

    def validate(self, attrs):
        username_value = attrs.get(self.username_field)
        if username_value and "@" in username_value:
            matched_user = (
                User.objects.filter(email__iexact=username_value)
                .order_by("date_joined")
                .first()
            )
            if matched_user:
                attrs[self.username_field] = matched_user.username

        data = super().validate(attrs)
        data["client_id"] = str(self.user.client_id) if self.user.client_id else None
        data["user"] = UserSerializer(self.user).data
        return data


class AuditLogSerializer(serializers.ModelSerializer):
    user_email = serializers.EmailField(source="user.email", read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = [
            "id",
            "client",
            "user",
            "user_email",
            "action",
            "resource_type",
            "resource_id",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields
