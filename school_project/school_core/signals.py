from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import ConflictError
from .models import Payment

"""Payments are immutable records."""


# pre_delete fires for queryset deletes too, which bypass Payment.delete()
@receiver(pre_delete, sender=Payment)
def prevent_delete_payment(sender, instance, **kwargs):
    raise ConflictError("Payments cannot be deleted.")
