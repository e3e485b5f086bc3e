from django.db import models


class ContentEntry(models.Model):
    """A piece of page copy, addressed by section and key."""

    section = models.CharField(max_length=100)
    key = models.CharField(max_length=255)
    value = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "content entries"
        constraints = [
            models.UniqueConstraint(fields=["section", "key"], name="uniq_content_section_key"),
        ]

    def __str__(self) -> str:
        return f"{self.section}.{self.key}"


class AdminCredential(models.Model):
    """Login for the site's content editor. Stores only a salted hash."""

    username = models.CharField(max_length=150, unique=True)
    password_hash = models.CharField(max_length=255)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["username"]

    def __str__(self) -> str:
        return self.username
