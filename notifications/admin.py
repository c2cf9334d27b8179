from django.contrib import admin

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
	list_display = ('title', 'recipient', 'type', 'is_read', 'created_at')
	search_fields = ('title', 'message', 'recipient__email')
	list_filter = ('type', 'is_read', 'created_at')
	raw_id_fields = ('recipient',)
	readonly_fields = ('created_at',)
