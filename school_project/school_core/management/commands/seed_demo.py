from django.core.management import call_command
from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = "Seeds the database with demo data (wraps create_demo_school)."

    # Define command-line argument
    def add_arguments(self, parser):
        parser.add_argument(
            "--school",  # Define flag
            type=str,
            default="Demo Academy",
            help="Name of the demo school (default: Demo Academy)",
        )

    def handle(self, *args, **options):
        school_name = options["school"]  # Read argument from add_arguments()

        self.stdout.write(self.style.NOTICE(
            f"Seeding demo data for {school_name}..."))
        call_command("create_demo_school", school_name=school_name, stdout=self.stdout)
        self.stdout.write(self.style.SUCCESS("Demo data seeded successfully!"))
