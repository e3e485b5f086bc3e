from django.contrib import admin

from content.models import ContentEntry
from content.store import ContentStore


@admin.register(ContentEntry)
class ContentEntryAdmin(admin.ModelAdmin):
    list_display = ("section", "key", "value", "updated_at")
    list_filter = ("section",)
    search_fields = ("section", "key", "value")
    ordering = ("section", "key")

    store = ContentStore()

    def save_model(self, request, obj, form, change):
        sections = {obj.section}
        if change:
            # An edit may move the entry out of its old section.
            sections.update(
                ContentEntry.objects.filter(pk=obj.pk).values_list("section", flat=True)
            )
        super().save_model(request, obj, form, change)
        self.store.invalidate(*sections)

    def delete_model(self, request, obj):
        section = obj.section
        super().delete_model(request, obj)
        self.store.invalidate(section)

    def delete_queryset(self, request, queryset):
        sections = set(queryset.values_list("section", flat=True))
        super().delete_queryset(request, queryset)
        self.store.invalidate(*sections)
