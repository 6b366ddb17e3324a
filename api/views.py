import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status, viewsets
from rest_framework.authentication import SessionAuthentication, TokenAuthentication
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import DispatchFailure, InvalidTransition, UnknownJob
from medical import lifecycle
from medical.models import VaccinationRecord
from notifications.models import Notification
from notifications.reminders import ReminderEngine
from scheduler.jobs import build_default_runner
from .permissions import IsProvider, IsProviderOrReadOnly, IsSchedulerAdmin
from .serializers import (
    CompleteVaccinationSerializer, FCMTokenSerializer, NotificationSerializer,
    RunJobSerializer, StatusReasonSerializer, VaccinationRecordSerializer,
)

logger = logging.getLogger(__name__)


def transition_conflict(error):
    return Response(
        {'detail': str(error), 'current_status': error.current, 'requested_status': error.target},
        status=status.HTTP_409_CONFLICT,
    )


class VaccinationRecordViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Vaccination records. Parents see their own children's records; providers
    see everything and drive the status changes.
    """
    serializer_class = VaccinationRecordSerializer
    permission_classes = [IsAuthenticated, IsProviderOrReadOnly]
    authentication_classes = [TokenAuthentication, SessionAuthentication]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['child', 'vaccine', 'status']

    def get_queryset(self):
        user = self.request.user
        records = VaccinationRecord.objects.select_related('child', 'vaccine', 'administered_by')
        if user.is_provider:
            return records.order_by('scheduled_date', 'id')
        return records.filter(child__parent=user).order_by('scheduled_date', 'id')

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        record = self.get_object()
        payload = CompleteVaccinationSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        try:
            lifecycle.mark_completed(
                record,
                administered_by=request.user,
                administered_date=payload.validated_data.get('administered_date'),
                batch_number=payload.validated_data.get('batch_number', ''),
                notes=payload.validated_data.get('notes'),
            )
        except InvalidTransition as e:
            return transition_conflict(e)

        ReminderEngine().notify_completed(record)
        return Response(self.get_serializer(record).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        return self._close(request, lifecycle.cancel)

    @action(detail=True, methods=['post'])
    def miss(self, request, pk=None):
        return self._close(request, lifecycle.mark_missed)

    def _close(self, request, operation):
        record = self.get_object()
        payload = StatusReasonSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            operation(record, reason=payload.validated_data['reason'])
        except InvalidTransition as e:
            return transition_conflict(e)
        return Response(self.get_serializer(record).data)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    authentication_classes = [TokenAuthentication, SessionAuthentication]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['notification_type', 'status', 'vaccination_record']

    def get_queryset(self):
        user = self.request.user
        if user.is_provider:
            return Notification.objects.all()
        return Notification.objects.filter(recipient=user)

    def get_permissions(self):
        if self.action == 'resend':
            return [IsAuthenticated(), IsProvider()]
        return super().get_permissions()

    @action(detail=True, methods=['post'])
    def resend(self, request, pk=None):
        notification = self.get_object()
        try:
            ReminderEngine().deliver(notification)
        except DispatchFailure as e:
            logger.warning(str(e))
            return Response(
                {'detail': str(e), 'notification': self.get_serializer(notification).data},
                status=status.HTTP_502_BAD_GATEWAY,
            )
        return Response(self.get_serializer(notification).data)


class RunJobView(APIView):
    """
    Run one scheduler job immediately.
    Endpoint: /api/scheduler/run/
    Body: { "name": "daily-reminders" }

    Each request builds its own runner, so the per-job lock does not reach
    other requests or the run_scheduler process. A manual run concurrent with
    another run of the same job is only held back by row locks in the
    lifecycle and the notification dedup window.
    """
    permission_classes = [IsAuthenticated, IsSchedulerAdmin]
    authentication_classes = [TokenAuthentication, SessionAuthentication]

    def post(self, request):
        payload = RunJobSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        runner = build_default_runner()

        try:
            outcome = runner.run_job(payload.validated_data['name'])
        except UnknownJob as e:
            return Response(
                {'detail': str(e), 'available_jobs': runner.status()['job_names']},
                status=status.HTTP_404_NOT_FOUND,
            )

        logger.info(f"Job {payload.validated_data['name']} run by {request.user.username}: {outcome['message']}")
        code = status.HTTP_200_OK if outcome['success'] else status.HTTP_500_INTERNAL_SERVER_ERROR
        return Response(outcome, status=code)


class UpdateFCMTokenView(APIView):
    """
    Store the device token used for push notifications.
    Endpoint: /api/update-fcm-token/
    Body: { "token": "abc123..." }
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        payload = FCMTokenSerializer(data=request.data)
        if not payload.is_valid():
            return Response({'error': 'Token is required'}, status=status.HTTP_400_BAD_REQUEST)

        user = request.user
        user.fcm_token = payload.validated_data['token']
        user.save(update_fields=['fcm_token'])
        return Response({'message': 'FCM Token updated successfully', 'user': user.username})
