"""Vehicle availability and unavailability block endpoints."""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.api import IsBackOffice, request_actor
from reservations.availability import blocked_intervals, check_availability

from .serializers import (
	AvailabilityCalendarSerializer,
	AvailabilityQuerySerializer,
	AvailabilityResultSerializer,
	MaintenanceBlockSerializer,
)
from .services import create_block, delete_block, list_blocks


class AvailabilityCalendarView(APIView):
	def get(self, request, vehicle_id):
		calendar = blocked_intervals(vehicle_id)
		return Response(AvailabilityCalendarSerializer(calendar).data)


class AvailabilityCheckView(APIView):
	def get(self, request, vehicle_id):
		query = AvailabilityQuerySerializer(data=request.query_params)
		query.is_valid(raise_exception=True)
		result = check_availability(
			vehicle_id,
			query.validated_data['start'],
			query.validated_data['end'],
			exclude_reservation_id=query.validated_data.get('exclude_reservation_id'),
		)
		return Response(AvailabilityResultSerializer(result).data)


class BlockListCreateView(APIView):
	permission_classes = [IsBackOffice]

	def get(self, request, vehicle_id):
		blocks = list_blocks(vehicle_id)
		return Response(MaintenanceBlockSerializer(blocks, many=True).data)

	def post(self, request, vehicle_id):
		payload = MaintenanceBlockSerializer(data=request.data)
		payload.is_valid(raise_exception=True)
		block = create_block(
			vehicle_id,
			payload.validated_data['start_date'],
			payload.validated_data['end_date'],
			request_actor(request),
			kind=payload.validated_data.get('kind', 'maintenance'),
			reason=payload.validated_data.get('reason', ''),
		)
		return Response(MaintenanceBlockSerializer(block).data, status=status.HTTP_201_CREATED)


class BlockDetailView(APIView):
	permission_classes = [IsBackOffice]

	def delete(self, request, vehicle_id, block_id):
		delete_block(vehicle_id, block_id, request_actor(request))
		return Response(status=status.HTTP_204_NO_CONTENT)
