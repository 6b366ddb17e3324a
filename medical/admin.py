from django.contrib import admin, messages

from core.exceptions import InvalidTransition
from . import lifecycle
from .models import AgeWindow, Child, Vaccine, VaccinationRecord, VaccineDose
from .scheduling import ScheduleGenerator


class AgeWindowInline(admin.TabularInline):
    model = AgeWindow
    extra = 1


class VaccineDoseInline(admin.TabularInline):
    model = VaccineDose
    extra = 1


@admin.register(Vaccine)
class VaccineAdmin(admin.ModelAdmin):
    list_display = ('name', 'short_name', 'is_active', 'updated_at')
    list_filter = ('is_active',)
    search_fields = ('name', 'short_name')
    inlines = [AgeWindowInline, VaccineDoseInline]
    actions = ['schedule_for_children']

    @admin.action(description="Schedule selected vaccines for eligible children")
    def schedule_for_children(self, request, queryset):
        generator = ScheduleGenerator()
        for vaccine in queryset:
            result = generator.generate_for_new_vaccine(vaccine)
            self.message_user(
                request,
                f"{vaccine.name}: {result.counters.get('vaccinations_scheduled', 0)} scheduled, {result.failed} failed",
                level=messages.WARNING if result.failed else messages.SUCCESS,
            )


@admin.register(Child)
class ChildAdmin(admin.ModelAdmin):
    list_display = ('full_name', 'parent', 'gender', 'date_of_birth', 'created_at')
    list_filter = ('gender',)
    search_fields = ('first_name', 'last_name', 'parent__username', 'parent__email')
    actions = ['generate_schedules']

    @admin.action(description="Generate missing vaccination records")
    def generate_schedules(self, request, queryset):
        generator = ScheduleGenerator()
        created = 0
        for child in queryset:
            created += generator.generate_for_child(child).created_count
        self.message_user(request, f"{created} vaccination records scheduled.", level=messages.SUCCESS)


@admin.register(VaccinationRecord)
class VaccinationRecordAdmin(admin.ModelAdmin):
    list_display = ('child', 'vaccine', 'dose_number', 'scheduled_date', 'status', 'administered_date')
    list_filter = ('status', 'vaccine', 'scheduled_date')
    search_fields = ('child__first_name', 'child__last_name', 'vaccine__name')
    readonly_fields = ('status', 'status_changed_at', 'created_at', 'updated_at')
    actions = ['mark_missed', 'cancel_records']

    def _apply(self, request, queryset, action, label):
        done = 0
        for record in queryset:
            try:
                action(record, reason=f"{label} by {request.user.username}")
                done += 1
            except InvalidTransition as e:
                self.message_user(request, str(e), level=messages.ERROR)
        self.message_user(request, f"{done} records {label.lower()}.", level=messages.SUCCESS)

    @admin.action(description="Mark selected records as missed")
    def mark_missed(self, request, queryset):
        self._apply(request, queryset, lifecycle.mark_missed, "Marked missed")

    @admin.action(description="Cancel selected records")
    def cancel_records(self, request, queryset):
        self._apply(request, queryset, lifecycle.cancel, "Cancelled")
