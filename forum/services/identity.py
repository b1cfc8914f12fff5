"""Host user-directory boundary.

The forum does not own users. Whatever platform hosts it supplies an object
satisfying IdentityProvider; seeding and the maintenance CLI only need to
enumerate users and ask whether one is a platform administrator.
"""

from typing import Iterable, List, Optional, Protocol


class IdentityProvider(Protocol):
    def list_user_ids(self) -> List[str]:
        ...

    def is_admin_group_member(self, user_id: str) -> bool:
        ...


class StaticIdentityProvider:
    """IdentityProvider backed by fixed lists, used by the CLI and in tests.

    Admins are always included in ``list_user_ids()`` even when they are not
    repeated in *user_ids*.
    """

    def __init__(self, user_ids: Optional[Iterable[str]] = None, admin_ids: Optional[Iterable[str]] = None):
        self._admin_ids = list(dict.fromkeys(admin_ids or []))
        self._user_ids = list(dict.fromkeys(list(self._admin_ids) + list(user_ids or [])))

    def list_user_ids(self) -> List[str]:
        return list(self._user_ids)

    def is_admin_group_member(self, user_id: str) -> bool:
        return user_id in self._admin_ids
