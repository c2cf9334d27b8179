"""Request parsing and response rendering for the reservation API.

Clients send either ``camelCase`` or ``snake_case`` keys; both are folded
into the canonical names here and nowhere else.
"""

from __future__ import annotations

from rest_framework import serializers

from core.exceptions import InvalidRange

from .models import BookingStatus, Channel, Reservation
from .pricing import AddonSelection
from .services import ReservationRequest

_KEY_ALIASES = {
    'vehicleId': 'vehicle_id',
    'vehicle': 'vehicle_id',
    'customerId': 'customer_id',
    'startDate': 'start_date',
    'start': 'start_date',
    'endDate': 'end_date',
    'end': 'end_date',
    'markPaid': 'mark_paid',
    'isPaid': 'mark_paid',
    'toStatus': 'status',
    'cancelReason': 'reason',
}


def canonical_keys(data) -> dict:
    payload = dict(data.items()) if hasattr(data, 'items') else {}
    for alias, name in _KEY_ALIASES.items():
        if alias in payload and name not in payload:
            payload[name] = payload.pop(alias)
    return payload


class CanonicalKeysMixin:
    def to_internal_value(self, data):
        return super().to_internal_value(canonical_keys(data))


class AddonsField(serializers.Field):
    def to_internal_value(self, data):
        return AddonSelection.from_payload(data)

    def to_representation(self, value):
        return value


class ReservationRequestSerializer(CanonicalKeysMixin, serializers.Serializer):
    vehicle_id = serializers.IntegerField()
    customer_id = serializers.IntegerField(required=False)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    addons = AddonsField(required=False)
    mark_paid = serializers.BooleanField(required=False, default=False)
    channel = serializers.ChoiceField(
        choices=[Channel.ONLINE, Channel.API],
        required=False,
        default=Channel.ONLINE,
    )

    def validate(self, attrs):
        if attrs['start_date'] >= attrs['end_date']:
            raise InvalidRange('Drop-off date must be after pick-up date.')
        return attrs

    def to_request(self, *, customer_id: int, channel: str | None = None) -> ReservationRequest:
        data = self.validated_data
        return ReservationRequest(
            vehicle_id=data['vehicle_id'],
            customer_id=data.get('customer_id') or customer_id,
            start_date=data['start_date'],
            end_date=data['end_date'],
            addons=data.get('addons') or AddonSelection(),
            channel=channel or data.get('channel', Channel.ONLINE),
            mark_paid=data.get('mark_paid', False),
        )


class QuoteRequestSerializer(CanonicalKeysMixin, serializers.Serializer):
    vehicle_id = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    addons = AddonsField(required=False)


class StatusChangeSerializer(CanonicalKeysMixin, serializers.Serializer):
    status = serializers.ChoiceField(choices=BookingStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ReservationSerializer(serializers.ModelSerializer):
    vehicle_name = serializers.StringRelatedField(source='vehicle')
    customer_email = serializers.EmailField(source='customer.email', read_only=True)
    rental_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Reservation
        fields = [
            'id',
            'reference_number',
            'vehicle',
            'vehicle_name',
            'customer',
            'customer_email',
            'start_date',
            'end_date',
            'rental_days',
            'base_amount',
            'addons_amount',
            'total_amount',
            'addons',
            'status',
            'payment_status',
            'channel',
            'cancel_reason',
            'cancelled_at',
            'confirmed_at',
            'completed_at',
            'paid_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class PriceLineSerializer(serializers.Serializer):
    code = serializers.CharField()
    rule = serializers.CharField(source='rule.value')
    unit_price = serializers.DecimalField(max_digits=10, decimal_places=2)
    quantity = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2)


class PriceQuoteSerializer(serializers.Serializer):
    days = serializers.IntegerField()
    daily_rate = serializers.DecimalField(max_digits=10, decimal_places=2)
    base = serializers.DecimalField(max_digits=10, decimal_places=2)
    addons_total = serializers.DecimalField(max_digits=10, decimal_places=2)
    total = serializers.DecimalField(max_digits=10, decimal_places=2)
    lines = PriceLineSerializer(many=True)
