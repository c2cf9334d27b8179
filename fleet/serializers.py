from __future__ import annotations

from rest_framework import serializers

from .models import MaintenanceBlock


class AvailabilityQuerySerializer(serializers.Serializer):
    start = serializers.DateField()
    end = serializers.DateField()
    exclude_reservation_id = serializers.IntegerField(required=False)

    def to_internal_value(self, data):
        payload = dict(data.items())
        for alias, name in (('startDate', 'start'), ('start_date', 'start'), ('endDate', 'end'), ('end_date', 'end')):
            if alias in payload and name not in payload:
                payload[name] = payload.pop(alias)
        return super().to_internal_value(payload)


class AvailabilityResultSerializer(serializers.Serializer):
    vehicle_id = serializers.IntegerField(source='vehicle.pk')
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    available = serializers.BooleanField()
    conflict_kind = serializers.CharField(allow_null=True)
    conflict_start = serializers.DateField(allow_null=True)
    conflict_end = serializers.DateField(allow_null=True)


class BlockedIntervalSerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    kind = serializers.CharField()
    reason = serializers.CharField(allow_blank=True)


class AvailabilityCalendarSerializer(serializers.Serializer):
    vehicle_id = serializers.IntegerField()
    min_days = serializers.IntegerField()
    max_days = serializers.IntegerField()
    vehicle_status = serializers.CharField()
    is_bookable = serializers.BooleanField()
    blocked = BlockedIntervalSerializer(many=True)


class MaintenanceBlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = MaintenanceBlock
        fields = ['id', 'vehicle', 'start_date', 'end_date', 'kind', 'reason', 'created_by', 'created_at']
        read_only_fields = ['id', 'vehicle', 'created_by', 'created_at']
