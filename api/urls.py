from django.urls import include, path
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.routers import DefaultRouter

from .views import NotificationViewSet, RunJobView, UpdateFCMTokenView, VaccinationRecordViewSet

router = DefaultRouter()
router.register(r'vaccination-records', VaccinationRecordViewSet, basename='vaccination-record')
router.register(r'notifications', NotificationViewSet, basename='notification')

app_name = 'api'

urlpatterns = [
    path('auth/token/', obtain_auth_token, name='api_token_auth'),
    path('', include(router.urls)),
    path('scheduler/run/', RunJobView.as_view(), name='scheduler_run'),
    path('update-fcm-token/', UpdateFCMTokenView.as_view(), name='update_fcm_token'),
]
