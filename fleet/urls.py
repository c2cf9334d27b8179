from django.urls import path

from . import views

urlpatterns = [
    path('<int:vehicle_id>/availability/', views.AvailabilityCalendarView.as_view(), name='availability'),
    path('<int:vehicle_id>/availability/check/', views.AvailabilityCheckView.as_view(), name='availability-check'),
    path('<int:vehicle_id>/blocks/', views.BlockListCreateView.as_view(), name='blocks'),
    path('<int:vehicle_id>/blocks/<int:block_id>/', views.BlockDetailView.as_view(), name='block-detail'),
]
