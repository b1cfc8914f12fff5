"""Tests for CategoryPermissionIndex and RoleRegistry lookups."""

import pytest
from sqlalchemy import event

from forum.exceptions import DuplicateSystemRoleError, ValidationError
from forum.models import RoleType
from forum.services.permission_index import CategoryPermissionIndex
from forum.services.role_registry import RoleRegistry
from tests.conftest import assign, grant, make_category, make_role


class TestPermissionsFor:

    def test_groups_rows_by_category(self, db, system_roles):
        lobby = make_category(db, "Lobby")
        staff = make_category(db, "Staff")
        grant(db, staff, system_roles["moderator"], can_view=True)
        grant(db, staff, system_roles["default"], can_view=False, can_post=True)

        index = CategoryPermissionIndex(db).permissions_for([lobby.id, staff.id])

        assert index[lobby.id] == []
        assert sorted(index[staff.id]) == sorted([
            (system_roles["moderator"].id, True),
            (system_roles["default"].id, False),
        ])

    def test_empty_input(self, db):
        assert CategoryPermissionIndex(db).permissions_for([]) == {}

    def test_single_query_for_many_categories(self, db, engine, system_roles):
        categories = [make_category(db, f"Cat {i}") for i in range(5)]
        for category in categories:
            grant(db, category, system_roles["default"], can_view=True)
        category_ids = [c.id for c in categories]

        statements = []

        def count(conn, cursor, statement, *args):
            statements.append(statement)

        event.listen(engine, "before_cursor_execute", count)
        try:
            CategoryPermissionIndex(db).permissions_for(category_ids)
        finally:
            event.remove(engine, "before_cursor_execute", count)

        assert len(statements) == 1


class TestFilterVisible:
    """Visibility filtering keeps public categories and those a held role can view."""

    def test_filters_and_keeps_order(self, db, system_roles):
        public = make_category(db, "Public", sort_order=0)
        members = make_category(db, "Members", sort_order=1)
        staff = make_category(db, "Staff", sort_order=2)
        grant(db, members, system_roles["default"], can_view=True)
        grant(db, staff, system_roles["moderator"], can_view=True)

        visible = CategoryPermissionIndex(db).filter_visible(
            [public, members, staff], [system_roles["default"].id]
        )

        assert [c.id for c in visible] == [public.id, members.id]

    def test_row_without_view_hides(self, db, system_roles):
        category = make_category(db, "Post only")
        grant(db, category, system_roles["default"], can_view=False, can_post=True)

        assert CategoryPermissionIndex(db).filter_visible([category], [system_roles["default"].id]) == []

    def test_no_roles_sees_only_public(self, db, system_roles):
        public = make_category(db, "Public")
        members = make_category(db, "Members")
        grant(db, members, system_roles["default"], can_view=True)

        visible = CategoryPermissionIndex(db).filter_visible([public, members], [])
        assert visible == [public]


class TestRoleRegistry:

    def test_find_by_type(self, db, system_roles):
        registry = RoleRegistry(db)
        assert registry.find_by_type(RoleType.MODERATOR).id == system_roles["moderator"].id
        assert registry.find_by_type("guest").id == system_roles["guest"].id
        assert registry.find_default_role().id == system_roles["default"].id
        assert registry.find_guest_role().id == system_roles["guest"].id

    def test_missing_type_returns_none(self, db):
        assert RoleRegistry(db).find_by_type(RoleType.ADMIN) is None

    def test_unknown_type_rejected(self, db):
        with pytest.raises(ValidationError):
            RoleRegistry(db).find_by_type("superuser")

    def test_duplicates_resolve_to_lowest_id(self, db, system_roles):
        make_role(db, "Members too", role_type="default", is_system_role=True)
        assert RoleRegistry(db).find_by_type(RoleType.DEFAULT).id == system_roles["default"].id

    def test_require_unique_raises_on_duplicates(self, db, system_roles):
        extra = make_role(db, "Members too", role_type="default", is_system_role=True)

        with pytest.raises(DuplicateSystemRoleError) as exc_info:
            RoleRegistry(db).require_unique(RoleType.DEFAULT)
        assert exc_info.value.details["role_ids"] == [system_roles["default"].id, extra.id]

    def test_custom_roles_may_share_type(self, db):
        first = make_role(db, "One")
        make_role(db, "Two")
        assert RoleRegistry(db).find_by_type(RoleType.CUSTOM).id == first.id

    def test_role_ids_for_user(self, db, system_roles):
        assign(db, "bob", system_roles["moderator"])
        assign(db, "bob", system_roles["default"])
        registry = RoleRegistry(db)

        assert registry.role_ids_for_user("bob") == sorted(
            [system_roles["moderator"].id, system_roles["default"].id]
        )
        assert registry.role_ids_for_user("nobody") == []
        assert registry.role_ids_for_user(None) == [system_roles["guest"].id]

    def test_anonymous_without_guest_role(self, db):
        assert RoleRegistry(db).role_ids_for_user(None) == []
