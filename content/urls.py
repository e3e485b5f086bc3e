from django.urls import path

from content.store import ContentStore
from content.views import (
    AdminLoginView,
    ApiIndexView,
    ChangePasswordView,
    ContactView,
    ContentEntriesView,
    ContentSectionView,
    ContentView,
    HealthCheckView,
)

app_name = "content"

store = ContentStore()

urlpatterns = [
    path("", ApiIndexView.as_view(), name="index"),
    path("api/health/", HealthCheckView.as_view(store=store), name="health"),
    path("api/content/", ContentView.as_view(store=store), name="content"),
    path("api/content/entries/", ContentEntriesView.as_view(store=store), name="content-entries"),
    path("api/content/<str:section>/", ContentSectionView.as_view(store=store), name="content-section"),
    path("api/admin/login/", AdminLoginView.as_view(store=store), name="admin-login"),
    path("api/admin/change-password/", ChangePasswordView.as_view(store=store), name="admin-change-password"),
    path("api/contact/", ContactView.as_view(), name="contact"),
]
