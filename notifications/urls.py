from django.urls import path

from . import views

urlpatterns = [
    path('', views.NotificationListView.as_view(), name='list'),
    path('read-all/', views.NotificationReadAllView.as_view(), name='read-all'),
    path('<int:pk>/', views.NotificationDetailView.as_view(), name='detail'),
]
