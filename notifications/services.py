"""Fire-and-forget notification dispatch and the recipient inbox."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partial
from typing import Iterable, Union

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.mail import send_mail
from django.db import transaction
from django.db.models import Q, QuerySet

from core.exceptions import NotificationNotFound

from .models import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserTarget:
    user_id: int


@dataclass(frozen=True)
class RoleTarget:
    roles: tuple[str, ...]

    @classmethod
    def back_office(cls) -> RoleTarget:
        return cls(roles=tuple(settings.RENTAL_STAFF_ROLES))


Target = Union[UserTarget, RoleTarget]


def notify(target: Target, type: str, title: str, body: str = '', link: str | None = None) -> None:
    """Queue a notification for after the surrounding transaction commits.

    Never raises: delivery failures are logged and dropped.
    """
    try:
        transaction.on_commit(partial(deliver, target, type, title, body, link))
    except Exception:
        logger.exception('Could not schedule notification "%s" for %s', title, target)


def deliver(target: Target, type: str, title: str, body: str = '', link: str | None = None) -> int:
    try:
        recipients = list(_resolve_recipients(target))
        if not recipients:
            logger.debug('No recipients for notification "%s" (%s)', title, target)
            return 0
        Notification.objects.bulk_create(
            [
                Notification(recipient=user, type=type, title=title, message=body, link=link or '')
                for user in recipients
            ]
        )
        if settings.NOTIFICATIONS_EMAIL_ENABLED:
            _email(recipients, title, body, link)
        return len(recipients)
    except Exception:
        logger.exception('Failed to deliver notification "%s" to %s', title, target)
        return 0


def _resolve_recipients(target: Target) -> Iterable:
    User = get_user_model()
    if isinstance(target, UserTarget):
        return User.objects.filter(pk=target.user_id, is_active=True)
    if isinstance(target, RoleTarget):
        condition = Q(role__in=target.roles)
        if 'admin' in target.roles:
            condition |= Q(is_superuser=True)
        return User.objects.filter(condition, is_active=True).distinct()
    raise TypeError(f'Unsupported notification target: {target!r}')


def _email(recipients, title: str, body: str, link: str | None) -> None:
    addresses = [user.email for user in recipients if user.email]
    if not addresses:
        return
    message = f"{body}\n\n{link}" if link else body
    send_mail(title, message, settings.DEFAULT_FROM_EMAIL, addresses, fail_silently=True)


def list_notifications(user, *, unread_only: bool = False, q: str = '') -> QuerySet[Notification]:
    notifications = Notification.objects.filter(recipient=user)
    if unread_only:
        notifications = notifications.filter(is_read=False)
    if q:
        notifications = notifications.filter(Q(title__icontains=q) | Q(message__icontains=q))
    return notifications


def _own_notification(user, notification_id) -> Notification:
    try:
        return Notification.objects.get(pk=notification_id, recipient=user)
    except (Notification.DoesNotExist, ValueError, TypeError) as exc:
        raise NotificationNotFound(notification_id=notification_id) from exc


def mark_read(user, notification_id, *, is_read: bool = True) -> Notification:
    notification = _own_notification(user, notification_id)
    if notification.is_read != is_read:
        notification.is_read = is_read
        notification.save(update_fields=['is_read'])
    return notification


def mark_all_read(user) -> int:
    return Notification.objects.filter(recipient=user, is_read=False).update(is_read=True)


def delete_notification(user, notification_id) -> None:
    _own_notification(user, notification_id).delete()
