from django.apps import AppConfig


class JobSchedulerConfig(AppConfig):
    name = 'scheduler'
    verbose_name = "Job scheduler"
