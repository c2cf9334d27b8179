from __future__ import annotations

from rest_framework import serializers

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    payment_id = serializers.CharField(source='reference_number', read_only=True)
    reservation_reference = serializers.CharField(source='reservation.reference_number', read_only=True)

    class Meta:
        model = Payment
        fields = [
            'payment_id',
            'reservation',
            'reservation_reference',
            'amount',
            'currency',
            'status',
            'failure_reason',
            'paid_at',
            'failed_at',
            'refunded_at',
            'created_at',
        ]
        read_only_fields = fields


class InitiatePaymentSerializer(serializers.Serializer):
    reservation_id = serializers.IntegerField()

    def to_internal_value(self, data):
        payload = dict(data.items())
        for alias in ('reservationId', 'reservation'):
            if alias in payload and 'reservation_id' not in payload:
                payload['reservation_id'] = payload.pop(alias)
        return super().to_internal_value(payload)


class FailurePaymentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='', max_length=255)
