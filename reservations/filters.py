"""Query filters for reservation listings."""

from __future__ import annotations

import django_filters

from .models import BookingStatus, Channel, PaymentStatus, Reservation


class ReservationFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=BookingStatus.choices)
    payment_status = django_filters.ChoiceFilter(choices=PaymentStatus.choices)
    channel = django_filters.ChoiceFilter(choices=Channel.choices)
    starts_after = django_filters.DateFilter(field_name='start_date', lookup_expr='gte')
    ends_before = django_filters.DateFilter(field_name='end_date', lookup_expr='lte')

    class Meta:
        model = Reservation
        fields = ['status', 'payment_status', 'vehicle', 'channel']
