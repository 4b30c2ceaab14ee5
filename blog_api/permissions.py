"""
Authorization primitives.

``ActingUser`` is the identity resolved from the bearer token; it is passed
explicitly into every service call that needs it.  ``editable`` is the only
ownership rule in the API: the owner of a resource, or any admin, may
change it.
"""
from dataclasses import dataclass

from blog_api.models import User


@dataclass(frozen=True)
class ActingUser:
    id: int
    name: str
    email: str
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: User) -> "ActingUser":
        return cls(id=user.id, name=user.name, email=user.email, is_admin=user.is_admin)


def owner_id(resource) -> int:
    """A user owns itself; posts and comments are owned by ``user_id``."""
    if isinstance(resource, User):
        return resource.id
    return resource.user_id


def editable(actor: ActingUser, resource) -> bool:
    return actor.is_admin or actor.id == owner_id(resource)
