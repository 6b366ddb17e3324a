import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from core.conf import get_scheduler_config
from .models import Child
from .scheduling import ScheduleGenerator

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Child)
def generate_child_schedule(sender, instance, created, **kwargs):
    """
    Generate the vaccination schedule automatically when a new Child is created.
    This keeps the behaviour the same across Admin, API and management commands.
    """
    if not created:
        return

    config = get_scheduler_config()
    if not config.auto_schedule_on_create:
        return

    try:
        schedule = ScheduleGenerator(config).generate_for_child(instance)
    except Exception as e:
        # the child is registered either way; generate_schedules can catch up later
        logger.exception(f"Failed to generate vaccination schedule for new child {instance.pk}: {e}")
        return

    logger.info(f"Vaccination schedule generated for new child {instance.pk}: {schedule.created_count} records")
