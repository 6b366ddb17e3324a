from django.core.management.base import BaseCommand
from django.db import transaction

from medical.models import AgeWindow, Vaccine, VaccineDose


class Command(BaseCommand):
    help = 'Populates the database with the routine childhood vaccine catalog'

    # (name, short name, description, [(min, max, unit)], [(dose, age in days, description)])
    VACCINES = [
        ("Hepatitis B", "HepB", "Protects against hepatitis B virus infection.",
         [(0, 18, 'years')],
         [(1, 0, "Birth dose (within 24 hours of birth)"), (2, 30, "1-2 months"), (3, 180, "6-18 months")]),
        ("DTaP (Diphtheria, Tetanus, Pertussis)", "DTaP", "Protects against diphtheria, tetanus and whooping cough.",
         [(6, 84, 'weeks')],
         [(1, 60, "2 months"), (2, 120, "4 months"), (3, 180, "6 months"), (4, 450, "15-18 months"),
          (5, 1825, "4-6 years")]),
        ("Polio (IPV)", "IPV", "Inactivated poliovirus vaccine.",
         [(6, 936, 'weeks')],
         [(1, 60, "2 months"), (2, 120, "4 months"), (3, 180, "6-18 months"), (4, 1825, "4-6 years")]),
        ("Haemophilus influenzae type b (Hib)", "Hib", "Protects against Hib disease.",
         [(6, 260, 'weeks')],
         [(1, 60, "2 months"), (2, 120, "4 months"), (3, 180, "6 months (if needed)"), (4, 365, "12-15 months")]),
        ("Pneumococcal Conjugate (PCV13)", "PCV13", "Protects against pneumococcal disease.",
         [(6, 260, 'weeks')],
         [(1, 60, "2 months"), (2, 120, "4 months"), (3, 180, "6 months"), (4, 365, "12-15 months")]),
        ("Rotavirus (RV)", "RV", "Oral vaccine against rotavirus gastroenteritis.",
         [(6, 32, 'weeks')],
         [(1, 60, "2 months"), (2, 120, "4 months"), (3, 180, "6 months (if using RotaTeq)")]),
        ("MMR (Measles, Mumps, Rubella)", "MMR", "Protects against measles, mumps and rubella.",
         [(11, 15, 'months'), (4, 18, 'years')],
         [(1, 365, "12-15 months"), (2, 1825, "4-6 years")]),
        ("Varicella (Chickenpox)", "VAR", "Protects against chickenpox.",
         [(11, 15, 'months'), (4, 18, 'years')],
         [(1, 365, "12-15 months"), (2, 1825, "4-6 years")]),
        ("Hepatitis A", "HepA", "Protects against hepatitis A virus infection.",
         [(12, 23, 'months'), (2, 18, 'years')],
         [(1, 365, "12-23 months"), (2, 545, "6 months after first dose")]),
        ("Influenza (Annual)", "Flu", "Seasonal influenza vaccination.",
         [(6, 216, 'months')],
         [(1, 180, "Annually starting at 6 months")]),
    ]

    def add_arguments(self, parser):
        parser.add_argument('--reset', action='store_true', help='Replace age windows and doses of existing vaccines')

    @transaction.atomic
    def handle(self, *args, **options):
        for name, short_name, description, windows, doses in self.VACCINES:
            vaccine, created = Vaccine.objects.update_or_create(
                name=name,
                defaults={'short_name': short_name, 'description': description, 'is_active': True},
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created vaccine: {name}'))
            else:
                self.stdout.write(f'Updated vaccine: {name}')

            if options['reset']:
                vaccine.age_windows.all().delete()
                vaccine.doses.all().delete()

            if not vaccine.age_windows.exists():
                AgeWindow.objects.bulk_create([
                    AgeWindow(vaccine=vaccine, min_age=low, max_age=high, unit=unit)
                    for low, high, unit in windows
                ])

            for dose_number, age_days, dose_description in doses:
                VaccineDose.objects.get_or_create(
                    vaccine=vaccine,
                    dose_number=dose_number,
                    defaults={'age_in_days': age_days, 'description': dose_description},
                )

        self.stdout.write(self.style.SUCCESS('Successfully populated the vaccine catalog!'))
