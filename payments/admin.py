from django.contrib import admin

from .models import Payment


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
	list_display = (
		'reference_number',
		'reservation',
		'amount',
		'currency',
		'status',
		'paid_at',
		'created_at',
	)
	search_fields = ('reference_number', 'reservation__reference_number', 'reservation__customer__email')
	list_filter = ('status', 'currency', 'created_at')
	readonly_fields = (
		'reference_number',
		'status',
		'paid_at',
		'failed_at',
		'refunded_at',
		'marked_paid_by',
		'created_at',
		'updated_at',
	)
	raw_id_fields = ('reservation',)
