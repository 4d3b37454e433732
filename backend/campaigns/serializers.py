from __future__ import annotations

from django.db import transaction
from rest_framework import serializers

from .models import Campaign, CampaignAlias
from .resolver import normalize_campaign_name


class CampaignSerializer(serializers.ModelSerializer):
    aliases = serializers.ListField(
        child=serializers.CharField(max_length=255), required=False
    )
    spend_count = serializers.IntegerField(read_only=True, default=0)
    lead_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Campaign
        fields = [
            "id",
            "client",
            "name",
            "original_name",
            "platform",
            "aliases",
            "is_active",
            "spend_count",
            "lead_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "client", "original_name", "created_at", "updated_at"]

    def _client_id(self):
        if self.instance is not None:
            return self.instance.client_id
        client = self.context.get("client")
        return client.id if client is not None else None

    def validate_name(self, value: str) -> str:
        value = normalize_campaign_name(value)
        if not value:
            raise serializers.ValidationError("Campaign name must not be empty.")
        if self.instance is None:
            client_id = self._client_id()
            clashes_original = Campaign.objects.filter(
                client_id=client_id, original_name=value
            ).exists()
            clashes_alias = CampaignAlias.objects.filter(
                client_id=client_id, name=value
            ).exists()
            if clashes_original or clashes_alias:
                raise serializers.ValidationError(
                    "A campaign with this name already exists for the client."
                )
        return value

    def validate_aliases(self, value: list[str]) -> list[str]:
        names: list[str] = []
        for raw in value:
            name = normalize_campaign_name(raw)
            if name and name not in names:
                names.append(name)

        client_id = self._client_id()
        own_id = self.instance.pk if self.instance is not None else None
        originals = Campaign.objects.filter(client_id=client_id, original_name__in=names)
        taken = CampaignAlias.objects.filter(client_id=client_id, name__in=names)
        if own_id is not None:
            originals = originals.exclude(pk=own_id)
            taken = taken.exclude(campaign_id=own_id)
        conflicts = sorted(
            set(originals.values_list("original_name", flat=True))
            | set(taken.values_list("name", flat=True))
        )
        if conflicts:
            raise serializers.ValidationError(
                f"Names already belong to another campaign: {', '.join(conflicts)}"
            )
        if self.instance is not None:
            names = [name for name in names if name != self.instance.original_name]
        return names

    def _replace_aliases(self, campaign: Campaign, names: list[str]) -> None:
        CampaignAlias.objects.filter(campaign=campaign).delete()
        CampaignAlias.objects.bulk_create(
            [
                CampaignAlias(
                    client_id=campaign.client_id,
                    campaign=campaign,
                    name=name,
                    position=index,
                )
                for index, name in enumerate(names)
            ]
        )

    def create(self, validated_data):
        aliases = validated_data.pop("aliases", [])
        with transaction.atomic():
            campaign = Campaign.objects.create(
                original_name=validated_data["name"], **validated_data
            )
            if aliases:
                self._replace_aliases(campaign, [a for a in aliases if a != campaign.original_name])
        return campaign

    def update(self, instance, validated_data):
        aliases = validated_data.pop("aliases", None)
        with transaction.atomic():
            instance = super().update(instance, validated_data)
            if aliases is not None:
                self._replace_aliases(instance, aliases)
        return instance


class CampaignMergeSerializer(serializers.Serializer):
    target_id = serializers.UUIDField()
    source_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
