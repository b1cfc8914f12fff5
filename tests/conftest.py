"""Shared test fixtures for the forum core test suite.

Most tests run against a fresh in-memory SQLite database (one connection
shared through StaticPool). The counter concurrency tests need real
concurrent connections and use a file-backed database instead.

Factories below insert rows directly, bypassing the services, so each test
can build exactly the permission layout it needs.
"""

import os

os.environ["LOG_FORMAT"] = "text"

import pytest
from sqlalchemy.pool import StaticPool

from forum.core.config import Settings
from forum.database import build_engine, init_db, make_session_factory
from forum.models import (
    CatHeader,
    Category,
    CategoryPermission,
    Post,
    Role,
    RoleType,
    Thread,
    UserRole,
)


@pytest.fixture()
def engine():
    """In-memory engine with all tables created."""
    eng = build_engine("sqlite://", poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    """Per-test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def file_engine(tmp_path):
    """File-backed engine for tests that need several real connections."""
    eng = build_engine(f"sqlite:///{tmp_path / 'forum.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with defaults only, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture()
def system_roles(db) -> dict:
    """One role per system type, keyed by type value."""
    return {
        role_type.value: make_role(db, role_type.value.capitalize(), role_type=role_type.value, is_system_role=True)
        for role_type in (RoleType.ADMIN, RoleType.MODERATOR, RoleType.DEFAULT, RoleType.GUEST)
    }


def make_role(db, name: str = "Custom", role_type: str = RoleType.CUSTOM.value, **overrides) -> Role:
    """Insert a role. Admin roles get every global flag unless overridden."""
    is_admin = role_type == RoleType.ADMIN.value
    fields = {
        "can_access_admin_tools": is_admin,
        "can_edit_roles": is_admin,
        "can_edit_categories": is_admin,
        "is_system_role": False,
    }
    fields.update(overrides)
    role = Role(name=name, role_type=role_type, **fields)
    db.add(role)
    db.commit()
    return role


def make_category(db, name: str = "General", slug: str = None, header: CatHeader = None, **overrides) -> Category:
    """Insert a category, creating a header for it when none is given."""
    if header is None:
        header = db.query(CatHeader).first()
        if header is None:
            header = CatHeader(name="Header", sort_order=0)
            db.add(header)
            db.flush()
    fields = {"sort_order": 0, "thread_count": 0, "post_count": 0}
    fields.update(overrides)
    category = Category(
        header_id=header.id,
        name=name,
        slug=slug or name.lower().replace(" ", "-"),
        **fields,
    )
    db.add(category)
    db.commit()
    return category


def grant(db, category: Category, role: Role, **flags) -> CategoryPermission:
    """Insert a permission row. Unspecified flags are False."""
    row = CategoryPermission(
        category_id=category.id,
        role_id=role.id,
        can_view=flags.get("can_view", False),
        can_post=flags.get("can_post", False),
        can_reply=flags.get("can_reply", False),
        can_moderate=flags.get("can_moderate", False),
    )
    db.add(row)
    db.commit()
    return row


def assign(db, user_id: str, role: Role) -> UserRole:
    assignment = UserRole(user_id=user_id, role_id=role.id)
    db.add(assignment)
    db.commit()
    return assignment


def make_thread(
    db,
    category: Category,
    title: str = "A thread",
    content: str = "Opening post.",
    author_id: str = "alice",
    **overrides,
) -> Thread:
    """Insert a thread with its opening post."""
    slug = overrides.pop("slug", None) or f"{title.lower().replace(' ', '-')}-{db.query(Thread).count() + 1}"
    thread = Thread(category_id=category.id, author_id=author_id, title=title, slug=slug, **overrides)
    db.add(thread)
    db.flush()
    db.add(Post(thread_id=thread.id, author_id=author_id, content=content, is_first_post=True))
    db.commit()
    return thread


def make_post(db, thread: Thread, content: str = "A reply.", author_id: str = "bob", **overrides) -> Post:
    """Insert a reply post."""
    post = Post(thread_id=thread.id, author_id=author_id, content=content, is_first_post=False, **overrides)
    db.add(post)
    db.commit()
    return post
