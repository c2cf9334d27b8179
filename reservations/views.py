"""REST endpoints for the reservation lifecycle."""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status
from rest_framework.exceptions import ValidationError
from rest_framework.filters import OrderingFilter
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import request_actor
from core.exceptions import Forbidden

from .filters import ReservationFilter
from .models import Channel
from .serializers import (
	PriceQuoteSerializer,
	QuoteRequestSerializer,
	ReservationRequestSerializer,
	ReservationSerializer,
	StatusChangeSerializer,
)
from .services import get_visible_reservation, list_reservations, quote, submit
from .transitions import transition_booking_status


class ReservationListCreateView(generics.ListAPIView):
	serializer_class = ReservationSerializer
	filter_backends = [DjangoFilterBackend, OrderingFilter]
	filterset_class = ReservationFilter
	ordering_fields = ['created_at', 'start_date', 'end_date', 'total_amount']

	def get_queryset(self):
		return list_reservations(request_actor(self.request))

	def post(self, request):
		actor = request_actor(request)
		payload = ReservationRequestSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		reservation = submit(payload.to_request(customer_id=request.user.pk), actor)
		return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)


class ManualReservationView(APIView):
	def post(self, request):
		actor = request_actor(request)
		if not actor.is_back_office:
			raise Forbidden('Only staff can create manual reservations.')
		payload = ReservationRequestSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		if not payload.validated_data.get('customer_id'):
			raise ValidationError({'customer_id': 'A customer is required for manual reservations.'})
		reservation = submit(payload.to_request(customer_id=request.user.pk, channel=Channel.MANUAL), actor)
		return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)


class ReservationDetailView(APIView):
	def get(self, request, pk):
		reservation = get_visible_reservation(request_actor(request), pk)
		return Response(ReservationSerializer(reservation).data)


class ReservationStatusView(APIView):
	def patch(self, request, pk):
		actor = request_actor(request)
		get_visible_reservation(actor, pk)
		payload = StatusChangeSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		reservation = transition_booking_status(
			pk,
			payload.validated_data['status'],
			actor,
			reason=payload.validated_data.get('reason'),
		)
		return Response(ReservationSerializer(reservation).data)


class QuoteView(APIView):
	def post(self, request):
		payload = QuoteRequestSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		data = payload.validated_data
		result = quote(
			vehicle_id=data['vehicle_id'],
			start_date=data['start_date'],
			end_date=data['end_date'],
			addons=data.get('addons'),
		)
		return Response(PriceQuoteSerializer(result).data)
