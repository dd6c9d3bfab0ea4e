from dataclasses import dataclass
from typing import Optional

from .models.school import Role


@dataclass(frozen=True)
class ServiceContext:
    """Already-resolved caller identity passed into every service call.

    The core trusts this value completely; it is built by the identity
    layer (see CurrentSchoolMiddleware) and never mutated afterwards.
    """

    user_id: Optional[int]
    school_id: Optional[int]
    role: str

    @property
    def is_platform(self) -> bool:
        return self.role == Role.SUPER_ADMIN

    @classmethod
    def for_user(cls, user) -> "ServiceContext":
        return cls(user_id=user.pk, school_id=user.school_id, role=user.role)
