"""Recipient inbox endpoints."""

from __future__ import annotations

from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import NotificationSerializer
from .services import delete_notification, list_notifications, mark_all_read, mark_read


class NotificationListView(generics.ListAPIView):
	serializer_class = NotificationSerializer
	filter_backends = []

	def get_queryset(self):
		params = self.request.query_params
		unread_only = params.get('unread', '').lower() in {'1', 'true', 'yes'}
		return list_notifications(self.request.user, unread_only=unread_only, q=params.get('q', '').strip())


class NotificationReadAllView(APIView):
	def post(self, request):
		updated = mark_all_read(request.user)
		return Response({'updated': updated})


class NotificationDetailView(APIView):
	def patch(self, request, pk):
		serializer = NotificationSerializer(data=request.data, partial=True)
		serializer.is_valid(raise_exception=True)
		notification = mark_read(request.user, pk, is_read=serializer.validated_data.get('is_read', True))
		return Response(NotificationSerializer(notification).data)

	def delete(self, request, pk):
		delete_notification(request.user, pk)
		return Response(status=status.HTTP_204_NO_CONTENT)
