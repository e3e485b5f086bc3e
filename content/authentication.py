from dataclasses import dataclass
from typing import Optional

from django.contrib.auth.hashers import check_password, make_password
from rest_framework.authentication import BasicAuthentication
from rest_framework.exceptions import AuthenticationFailed

from content.store import ContentStore


@dataclass(frozen=True)
class AdminPrincipal:
    """The authenticated editor attached to ``request.user``."""

    id: int
    username: str

    is_authenticated = True


class AdminCredentialAuthentication(BasicAuthentication):
    """
    HTTP Basic authentication against the store's admin credentials.

    Views pass their store in; when constructed without one (e.g. by schema
    generation through ``DEFAULT_AUTHENTICATION_CLASSES``) a default-alias
    store is used.
    """

    www_authenticate_realm = "content"

    def __init__(self, store: Optional[ContentStore] = None):
        self.store = store or ContentStore()

    def authenticate_credentials(self, userid, password, request=None):
        principal = verify_admin(self.store, userid, password)
        if principal is None:
            raise AuthenticationFailed("Invalid credentials")
        return principal, None


def verify_admin(store: ContentStore, username: str, password: str) -> Optional[AdminPrincipal]:
    """Return the principal when ``password`` matches the stored hash for ``username``."""
    credential = store.find_credential(username)
    if credential is None:
        # Hash anyway so unknown usernames take as long as wrong passwords.
        make_password(password)
        return None
    if not check_password(password, credential.password_hash):
        return None
    return AdminPrincipal(id=credential.pk, username=credential.username)
