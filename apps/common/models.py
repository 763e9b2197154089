import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone


class TimestampedModel(models.Model):
    """
    Abstract base model with a UUID primary key and self-updating
    `created_at` / `updated_at` fields.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, editable=False)
    updated_at = models.DateTimeField(auto_now=True, editable=False)

    class Meta:
        abstract = True
        ordering = ["-created_at"]


class ExpiringQuerySet(models.QuerySet):
    def unexpired(self, now=None):
        """Rows without an expiry or expiring strictly after `now`."""
        now = now or timezone.now()
        return self.filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))

    def expired(self, before=None):
        before = before or timezone.now()
        return self.filter(expires_at__isnull=False, expires_at__lte=before)


class ExpiringModel(TimestampedModel):
    """Timestamped model with an optional expiry instant."""

    expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = ExpiringQuerySet.as_manager()

    class Meta(TimestampedModel.Meta):
        abstract = True

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or timezone.now())
