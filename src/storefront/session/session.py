"""Session value object."""

from protean.fields import String

from storefront.domain import storefront


@storefront.value_object
class Session:
    """Who is shopping: a guest (no token) or an authenticated user.

    The token is opaque to the engine; only its presence decides the mode.
    """

    token = String(max_length=8192)
    user_id = String(max_length=255)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def mode(self) -> str:
        return "authenticated" if self.is_authenticated else "guest"
