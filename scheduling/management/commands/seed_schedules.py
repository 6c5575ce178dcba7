# scheduling/management/commands/seed_schedules.py
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from scheduling.models import User, WeeklyRule
from scheduling.services.weekdays import to_weekday_index, weekday_label

# Monday..Friday office hours with a lunch break
DEFAULT_DAYS = ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]
DEFAULT_HOURS = {"start_time": "07:30", "end_time": "17:00", "break_start": "11:30", "break_end": "13:30"}


class Command(BaseCommand):
    help = "Install default office-hours weekly rules for practitioners without any (idempotent)."

    def add_arguments(self, parser):
        parser.add_argument("usernames", nargs="*", help="practitioners to seed; all doctors when omitted")
        parser.add_argument("--days", default=",".join(DEFAULT_DAYS),
                            help="comma separated weekdays (codes, labels or 0-6, 0 = Sunday)")
        parser.add_argument("--replace", action="store_true", help="drop existing rules first")

    def handle(self, *args, **opts):
        try:
            weekdays = sorted({to_weekday_index(d.strip()) for d in opts["days"].split(",") if d.strip()})
        except ValueError as exc:
            raise CommandError(str(exc)) from exc

        doctors = User.objects.filter(role="doctor")
        if opts["usernames"]:
            doctors = doctors.filter(username__in=opts["usernames"])
        if not doctors.exists():
            self.stdout.write(self.style.WARNING("No practitioners matched."))
            return

        for doctor in doctors.order_by("id"):
            with transaction.atomic():
                if opts["replace"]:
                    doctor.weekly_rules.all().delete()
                elif doctor.weekly_rules.exists():
                    self.stdout.write(f"skip: {doctor.username} already has weekly rules")
                    continue
                WeeklyRule.objects.bulk_create(
                    [WeeklyRule(practitioner=doctor, weekday=day, **DEFAULT_HOURS) for day in weekdays]
                )
            days = ", ".join(weekday_label(d) for d in weekdays)
            self.stdout.write(self.style.SUCCESS(f"ok: {doctor.username} ({days})"))
        self.stdout.write(self.style.SUCCESS("Default schedules ensured."))
