"""Payment endpoints. Completion is an internal status flip."""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import request_actor

from .serializers import FailurePaymentSerializer, InitiatePaymentSerializer, PaymentSerializer
from .services import (
	initiate_payment,
	mark_failed,
	mark_paid,
	refund_payment,
	retry_payment,
)


class PaymentCreateView(APIView):
	def post(self, request):
		payload = InitiatePaymentSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		payment = initiate_payment(payload.validated_data['reservation_id'], request_actor(request))
		return Response(PaymentSerializer(payment).data, status=status.HTTP_201_CREATED)


class PaymentPaidView(APIView):
	def patch(self, request, payment_id):
		payment = mark_paid(payment_id, request_actor(request))
		return Response(PaymentSerializer(payment).data)


class PaymentFailedView(APIView):
	def patch(self, request, payment_id):
		payload = FailurePaymentSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		payment = mark_failed(payment_id, payload.validated_data.get('reason', ''), actor=request_actor(request))
		return Response(PaymentSerializer(payment).data)


class PaymentRetryView(APIView):
	def patch(self, request, payment_id):
		payment = retry_payment(payment_id, request_actor(request))
		return Response(PaymentSerializer(payment).data)


class PaymentRefundView(APIView):
	def patch(self, request, payment_id):
		payment = refund_payment(payment_id, request_actor(request))
		return Response(PaymentSerializer(payment).data)
