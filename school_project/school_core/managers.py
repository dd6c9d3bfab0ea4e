from django.contrib.auth.models import UserManager
from django.db import models

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a school
# -----------------------------------------
# Define subclass of Django’s QuerySet
class TenantQuerySet(models.QuerySet):
    def for_school(self, school_id):         # Add queryset helper
        return self.filter(school_id=school_id)  # Apply filter

    def visible_to(self, context):
        # Platform callers without a school see every tenant,
        # everyone else only their own school (filtered in the same query)
        if context.school_id is None and context.is_platform:
            return self.all()
        return self.filter(school_id=context.school_id)
    # Enables query:
    # Invoice.objects.visible_to(context).get(pk=invoice_id)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager):

    def get_queryset(self):  # every model gets TenantQuerySet
        return TenantQuerySet(self.model, using=self._db)

    def for_school(self, school_id):  # call for_school() directly on objects
        return self.get_queryset().for_school(school_id)

    def visible_to(self, context):
        return self.get_queryset().visible_to(context)


# Same scoping for the custom User model, keeping create_user()/create_superuser()
class SchoolUserManager(UserManager):

    def get_queryset(self):
        return TenantQuerySet(self.model, using=self._db)

    def for_school(self, school_id):
        return self.get_queryset().for_school(school_id)

    def visible_to(self, context):
        return self.get_queryset().visible_to(context)
