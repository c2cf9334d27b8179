"""Root URL configuration."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/reservations/', include(('reservations.urls', 'reservations'), namespace='reservations')),
    path('api/vehicles/', include(('fleet.urls', 'fleet'), namespace='fleet')),
    path('api/payments/', include(('payments.urls', 'payments'), namespace='payments')),
    path('api/notifications/', include(('notifications.urls', 'notifications'), namespace='notifications')),
]
