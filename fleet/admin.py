from django import forms
from django.contrib import admin

from core.intervals import overlap_q

from .models import MaintenanceBlock, Vehicle


class MaintenanceBlockAdminForm(forms.ModelForm):
	class Meta:
		model = MaintenanceBlock
		fields = '__all__'

	def clean(self):
		# Imported here: reservations depends on fleet.
		from reservations.models import BookingStatus, Reservation

		cleaned_data = super().clean()
		vehicle = cleaned_data.get('vehicle')
		# Inline forms carry the vehicle on the instance.
		vehicle_id = vehicle.pk if vehicle is not None else self.instance.vehicle_id
		start_date = cleaned_data.get('start_date')
		end_date = cleaned_data.get('end_date')
		if vehicle_id and start_date and end_date and start_date < end_date:
			clash = (
				Reservation.objects.filter(vehicle_id=vehicle_id, status=BookingStatus.CONFIRMED)
				.filter(overlap_q(start_date, end_date))
				.order_by('start_date')
				.first()
			)
			if clash is not None:
				raise forms.ValidationError(
					f"Confirmed reservation {clash.reference_number} holds "
					f"{clash.start_date:%b %d, %Y} to {clash.end_date:%b %d, %Y}."
				)
		return cleaned_data


class MaintenanceBlockInline(admin.TabularInline):
	model = MaintenanceBlock
	form = MaintenanceBlockAdminForm
	extra = 0
	fields = ('start_date', 'end_date', 'kind', 'reason')


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
	list_display = (
		'make',
		'model',
		'year',
		'location',
		'daily_rate',
		'min_rental_days',
		'max_rental_days',
		'status',
	)
	search_fields = ('make', 'model', 'location')
	list_filter = ('status', 'location')
	inlines = (MaintenanceBlockInline,)
	fieldsets = (
		('Vehicle details', {
			'fields': ('make', 'model', 'year', 'location', 'status'),
		}),
		('Rental terms', {
			'fields': ('daily_rate', 'min_rental_days', 'max_rental_days'),
		}),
	)


@admin.register(MaintenanceBlock)
class MaintenanceBlockAdmin(admin.ModelAdmin):
	form = MaintenanceBlockAdminForm
	list_display = ('vehicle', 'start_date', 'end_date', 'kind', 'reason', 'created_by')
	search_fields = ('vehicle__make', 'vehicle__model', 'reason')
	list_filter = ('kind', 'start_date')
	autocomplete_fields = ('vehicle',)
	raw_id_fields = ('created_by',)

	def save_model(self, request, obj, form, change):
		if not obj.created_by_id:
			obj.created_by = request.user
		super().save_model(request, obj, form, change)
