from django.contrib import admin, messages

from accounts.services import actor_for
from core.exceptions import ReservationError

from .models import BookingStatus, Reservation
from .transitions import transition_booking_status


def _transition(modeladmin, request, queryset, to_status):
	actor = actor_for(request.user)
	moved = 0
	for reservation in queryset:
		try:
			transition_booking_status(reservation.pk, to_status, actor)
		except ReservationError as exc:
			modeladmin.message_user(request, f"{reservation.reference_number}: {exc.message}", messages.WARNING)
		else:
			moved += 1
	if moved:
		modeladmin.message_user(request, f"{moved} reservation(s) moved to {to_status}.", messages.SUCCESS)


@admin.action(description='Confirm selected reservations')
def confirm_reservations(modeladmin, request, queryset):
	_transition(modeladmin, request, queryset, BookingStatus.CONFIRMED)


@admin.action(description='Reject selected reservations')
def reject_reservations(modeladmin, request, queryset):
	_transition(modeladmin, request, queryset, BookingStatus.REJECTED)


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
	list_display = (
		'reference_number',
		'customer',
		'vehicle',
		'start_date',
		'end_date',
		'total_amount',
		'status',
		'payment_status',
		'channel',
		'created_at',
	)
	list_filter = (
		'status',
		'payment_status',
		'channel',
		'start_date',
	)
	search_fields = (
		'reference_number',
		'customer__email',
		'vehicle__make',
		'vehicle__model',
	)
	# Booked dates, vehicle and customer are fixed once requested; status
	# fields move only through the state machine.
	readonly_fields = (
		'reference_number',
		'vehicle',
		'customer',
		'start_date',
		'end_date',
		'channel',
		'base_amount',
		'addons_amount',
		'total_amount',
		'addons',
		'status',
		'payment_status',
		'cancel_reason',
		'cancelled_by',
		'cancelled_at',
		'confirmed_at',
		'completed_at',
		'paid_at',
		'created_by',
		'created_at',
		'updated_at',
	)
	list_select_related = ('customer', 'vehicle')
	ordering = ('-created_at',)
	actions = (confirm_reservations, reject_reservations)

	def has_add_permission(self, request):
		return False
