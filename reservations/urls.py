from django.urls import path

from . import views

urlpatterns = [
    path('', views.ReservationListCreateView.as_view(), name='list'),
    path('manual/', views.ManualReservationView.as_view(), name='manual'),
    path('quote/', views.QuoteView.as_view(), name='quote'),
    path('<int:pk>/', views.ReservationDetailView.as_view(), name='detail'),
    path('<int:pk>/status/', views.ReservationStatusView.as_view(), name='status'),
]
