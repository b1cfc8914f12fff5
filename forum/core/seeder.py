"""Seed the default forum data.

Each step checks its own state first and does nothing if it has already
run, so ``seed_all`` is safe to call on every start-up and from the repair
command. Steps run independently: one failing step is logged and the rest
still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import CatHeader, Category, CategoryPermission, Post, Role, RoleType, Thread
from ..repositories import CategoryRepository, RoleRepository, ThreadRepository
from ..services.counter_service import CounterService
from ..services.identity import IdentityProvider
from ..services.role_registry import RoleRegistry
from ..services.role_service import RoleService

logger = logging.getLogger(__name__)

WELCOME_THREAD_SLUG = "welcome-to-the-forums"
# Author of the welcome thread when the identity provider knows no admin.
FALLBACK_AUTHOR_ID = "admin"

_DEFAULT_ROLES = [
    {
        "role_type": RoleType.ADMIN,
        "name": "Admin",
        "description": "Administrator role with full permissions",
        "can_access_admin_tools": True,
        "can_edit_roles": True,
        "can_edit_categories": True,
    },
    {
        "role_type": RoleType.MODERATOR,
        "name": "Moderator",
        "description": "Moderator role with elevated permissions",
        "can_access_admin_tools": True,
        "can_edit_roles": False,
        "can_edit_categories": False,
    },
    {
        "role_type": RoleType.DEFAULT,
        "name": "User",
        "description": "Default user role with basic permissions",
        "can_access_admin_tools": False,
        "can_edit_roles": False,
        "can_edit_categories": False,
    },
    {
        "role_type": RoleType.GUEST,
        "name": "Guest",
        "description": "Role applied to visitors who are not signed in",
        "can_access_admin_tools": False,
        "can_edit_roles": False,
        "can_edit_categories": False,
    },
]

_DEFAULT_CATEGORIES = [
    {
        "name": "General Discussions",
        "slug": "general-discussions",
        "description": "A place for general conversations and discussions",
        "sort_order": 0,
    },
    {
        "name": "Support",
        "slug": "support",
        "description": "Ask questions about the forum, provide feedback or report issues.",
        "sort_order": 1,
    },
]

# Category grants per role type. The admin role is absent on purpose: its
# access is implicit and repair prunes any admin rows.
_DEFAULT_GRANTS = {
    RoleType.MODERATOR: {"can_view": True, "can_post": True, "can_reply": True, "can_moderate": True},
    RoleType.DEFAULT: {"can_view": True, "can_post": True, "can_reply": True, "can_moderate": False},
    RoleType.GUEST: {"can_view": True, "can_post": False, "can_reply": False, "can_moderate": False},
}

_WELCOME_TITLE = "Welcome to the Forums"
_WELCOME_CONTENT = (
    "Welcome to the forums!\n\n"
    "This is a community forum built into your workspace. Here you can "
    "discuss topics, share ideas, and collaborate with other users.\n\n"
    "[b]Features:[/b]\n"
    "[list]\n"
    "[*]Create and reply to threads\n"
    "[*]Organize discussions by categories\n"
    "[*]Search with quoted phrases, AND/OR and -exclusions\n"
    "[/list]\n"
    "Feel free to start a new discussion or reply to existing threads. Happy posting!"
)


@dataclass
class SeedResult:
    """What one seed_all run created. All zero on a fully seeded database."""

    roles_created: int = 0
    headers_created: int = 0
    categories_created: int = 0
    permissions_created: int = 0
    assignments_created: int = 0
    threads_created: int = 0
    failed_steps: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            self.roles_created + self.headers_created + self.categories_created
            + self.permissions_created + self.assignments_created + self.threads_created
        )


def seed_default_roles(db: Session) -> int:
    """Create any missing system role. Returns the number created."""
    registry = RoleRegistry(db)
    role_repo = RoleRepository(db)
    created = 0
    for entry in _DEFAULT_ROLES:
        role_type = entry["role_type"]
        if registry.find_by_type(role_type) is not None:
            continue
        fields = {k: v for k, v in entry.items() if k != "role_type"}
        role_repo.add(Role(role_type=role_type.value, is_system_role=True, **fields))
        created += 1
        logger.info("Created system role", extra={"role_type": role_type.value})
    db.commit()
    return created


def seed_category_headers(db: Session) -> int:
    """Create the "General" header unless any header exists."""
    if CategoryRepository(db).first_header() is not None:
        logger.debug("Category headers already exist, skipping")
        return 0
    db.add(CatHeader(name="General", description="General discussion categories", sort_order=0))
    db.commit()
    logger.info("Created category header 'General'")
    return 1


def seed_default_categories(db: Session) -> int:
    """Create the default categories unless any category exists."""
    repo = CategoryRepository(db)
    if repo.get_all():
        logger.debug("Categories already exist, skipping")
        return 0
    header = repo.first_header()
    if header is None:
        logger.warning("No category header found, cannot create categories")
        return 0
    for entry in _DEFAULT_CATEGORIES:
        db.add(Category(header_id=header.id, thread_count=0, post_count=0, **entry))
    db.commit()
    logger.info("Created default categories", extra={"count": len(_DEFAULT_CATEGORIES)})
    return len(_DEFAULT_CATEGORIES)


def seed_category_permissions(db: Session) -> int:
    """Grant the default roles access to every category.

    Skipped entirely once any permission row exists, so that grants an
    administrator removed are not brought back.
    """
    if db.query(CategoryPermission.id).first() is not None:
        logger.debug("Category permissions already exist, skipping")
        return 0

    categories = CategoryRepository(db).get_all()
    if not categories:
        logger.warning("No categories found, cannot create permissions")
        return 0

    registry = RoleRegistry(db)
    created = 0
    for role_type, flags in _DEFAULT_GRANTS.items():
        role = registry.find_by_type(role_type)
        if role is None:
            logger.warning("System role missing, skipping its grants", extra={"role_type": role_type.value})
            continue
        for category in categories:
            db.add(CategoryPermission(category_id=category.id, role_id=role.id, **flags))
            created += 1
    db.commit()
    logger.info("Created category permissions", extra={"count": created})
    return created


def assign_user_roles(db: Session, identity: IdentityProvider) -> int:
    """Give every known user the default role, and admins the admin role.

    Users that already hold their roles are left alone. A failure for one
    user is logged and the others are still processed.
    """
    service = RoleService(db)
    created = 0
    for user_id in identity.list_user_ids():
        try:
            created += len(service.provision_user(user_id, identity.is_admin_group_member(user_id)))
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Failed to assign roles to user", extra={"user_id": user_id, "error": str(e)})
    if created:
        logger.info("Assigned user roles", extra={"count": created})
    return created


def _first_admin(identity: IdentityProvider) -> str:
    for user_id in identity.list_user_ids():
        if identity.is_admin_group_member(user_id):
            return user_id
    return FALLBACK_AUTHOR_ID


def seed_welcome_thread(db: Session, identity: IdentityProvider) -> int:
    """Create the pinned welcome thread in the first category."""
    if ThreadRepository(db).get_by_slug(WELCOME_THREAD_SLUG) is not None:
        logger.debug("Welcome thread already exists, skipping")
        return 0

    category = db.query(Category).order_by(Category.id).first()
    if category is None:
        logger.warning("No categories found, cannot create welcome thread")
        return 0

    author_id = _first_admin(identity)
    thread = Thread(
        category_id=category.id,
        author_id=author_id,
        title=_WELCOME_TITLE,
        slug=WELCOME_THREAD_SLUG,
        is_pinned=True,
    )
    db.add(thread)
    db.flush()
    post = Post(thread_id=thread.id, author_id=author_id, content=_WELCOME_CONTENT, is_first_post=True)
    db.add(post)
    db.flush()
    thread.last_post_id = post.id
    category_id = category.id
    db.commit()

    CounterService(db).adjust_category_threads(category_id, 1)
    logger.info("Created welcome thread", extra={"category_id": category_id, "author_id": author_id})
    return 1


def seed_all(db: Session, identity: IdentityProvider) -> SeedResult:
    """Run every seed step. Safe to re-run."""
    logger.info("Forum seeding started")
    result = SeedResult()

    steps: List[tuple[str, str, Callable[[], int]]] = [
        ("roles", "roles_created", lambda: seed_default_roles(db)),
        ("category_headers", "headers_created", lambda: seed_category_headers(db)),
        ("categories", "categories_created", lambda: seed_default_categories(db)),
        ("category_permissions", "permissions_created", lambda: seed_category_permissions(db)),
        ("user_roles", "assignments_created", lambda: assign_user_roles(db, identity)),
        ("welcome_thread", "threads_created", lambda: seed_welcome_thread(db, identity)),
    ]
    for name, counter, step in steps:
        try:
            setattr(result, counter, step())
        except SQLAlchemyError as e:
            db.rollback()
            result.failed_steps.append(name)
            logger.error("Seed step failed", extra={"step": name, "error": str(e)}, exc_info=True)

    logger.info(
        "Forum seeding completed",
        extra={"records_created": result.total, "failed_steps": result.failed_steps},
    )
    return result

