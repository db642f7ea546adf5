"""Known problems that tickets can be linked to."""

from django.conf import settings
from django.db import models


class ProblemCategory(models.TextChoices):
    MINOR = "MINOR", "Minor"
    MAJOR = "MAJOR", "Major"


class Problem(models.Model):
    name = models.CharField(max_length=150, db_index=True)
    description = models.TextField(blank=True)
    category = models.CharField(
        max_length=10, choices=ProblemCategory.choices, default=ProblemCategory.MINOR, db_index=True
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="+"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.name


__all__ = ["Problem", "ProblemCategory"]
