from dataclasses import dataclass
from uuid import UUID

from carelink.models.profile import Profile
from carelink.models.user import User


@dataclass
class SessionContext:
    """The authenticated caller of a request.

    Built once per request by ``get_session_context`` and handed explicitly to
    every service call; nothing outside a request keeps a reference to it.
    """

    user: User
    profile: Profile

    @property
    def user_id(self) -> UUID:
        return self.user.id

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_admin(self) -> bool:
        return self.user.role == "admin"
