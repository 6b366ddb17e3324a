from django.contrib import admin, messages
from django.utils.html import format_html

from .models import Notification
from .reminders import ReminderEngine


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('title', 'recipient', 'notification_type', 'status_badge', 'attempts', 'created_at')
    list_filter = ('notification_type', 'status', 'created_at')
    search_fields = ('title', 'body', 'recipient__username', 'recipient__email')
    readonly_fields = ('created_at', 'sent_at', 'status_badge', 'delivery_log', 'attempts', 'error')
    actions = ['resend']

    def status_badge(self, obj):
        colors = {
            Notification.STATUS_SENT: 'green',
            Notification.STATUS_FAILED: 'red',
            Notification.STATUS_PENDING: 'gray',
        }
        return format_html('<span style="color: {};">{}</span>', colors.get(obj.status, 'black'), obj.get_status_display())
    status_badge.short_description = "Status"

    @admin.action(description="Resend selected undelivered notifications")
    def resend(self, request, queryset):
        ids = list(queryset.exclude(status=Notification.STATUS_SENT).values_list('pk', flat=True))
        result = ReminderEngine().resend_failed(notification_ids=ids)
        self.message_user(
            request,
            f"{result.succeeded} delivered, {result.failed} still failing.",
            level=messages.WARNING if result.failed else messages.SUCCESS,
        )
