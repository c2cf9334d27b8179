from django.urls import path

from . import views

urlpatterns = [
    path('', views.PaymentCreateView.as_view(), name='create'),
    path('<str:payment_id>/paid/', views.PaymentPaidView.as_view(), name='paid'),
    path('<str:payment_id>/failed/', views.PaymentFailedView.as_view(), name='failed'),
    path('<str:payment_id>/retry/', views.PaymentRetryView.as_view(), name='retry'),
    path('<str:payment_id>/refund/', views.PaymentRefundView.as_view(), name='refund'),
]
