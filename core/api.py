"""REST framework glue shared by every app."""

from __future__ import annotations

from rest_framework import permissions
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from accounts.services import Actor, actor_for

from .exceptions import ReservationError


def exception_handler(exc, context):
    """Render domain errors as ``{"error": code, "detail": message, ...}``."""
    if isinstance(exc, ReservationError):
        return Response(exc.as_dict(), status=exc.status_code)
    return drf_exception_handler(exc, context)


def request_actor(request) -> Actor:
    return actor_for(request.user)


class IsBackOffice(permissions.BasePermission):
    message = 'Only staff can perform this action.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request_actor(request).is_back_office)
