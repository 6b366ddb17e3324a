from rest_framework import serializers

from medical.models import VaccinationRecord
from notifications.models import Notification


class VaccinationRecordSerializer(serializers.ModelSerializer):
    child_name = serializers.CharField(source='child.full_name', read_only=True)
    vaccine_name = serializers.CharField(source='vaccine.name', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    is_terminal = serializers.BooleanField(read_only=True)
    administered_by_name = serializers.SerializerMethodField()

    class Meta:
        model = VaccinationRecord
        fields = [
            'id', 'child', 'child_name', 'vaccine', 'vaccine_name', 'dose_number',
            'scheduled_date', 'status', 'status_display', 'is_terminal', 'status_reason', 'status_changed_at',
            'administered_date', 'administered_by', 'administered_by_name', 'batch_number',
            'notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields

    def get_administered_by_name(self, obj):
        if obj.administered_by is None:
            return None
        return obj.administered_by.get_full_name() or obj.administered_by.username


class CompleteVaccinationSerializer(serializers.Serializer):
    administered_date = serializers.DateField(required=False)
    batch_number = serializers.CharField(required=False, allow_blank=True, max_length=50)
    notes = serializers.CharField(required=False, allow_blank=True)


class StatusReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class NotificationSerializer(serializers.ModelSerializer):
    type_display = serializers.CharField(source='get_notification_type_display', read_only=True)

    class Meta:
        model = Notification
        fields = [
            'id', 'vaccination_record', 'notification_type', 'type_display', 'title', 'body',
            'status', 'delivery_methods', 'delivery_log', 'error', 'attempts', 'created_at', 'sent_at',
        ]
        read_only_fields = fields


class RunJobSerializer(serializers.Serializer):
    name = serializers.CharField()


class FCMTokenSerializer(serializers.Serializer):
    token = serializers.CharField()
