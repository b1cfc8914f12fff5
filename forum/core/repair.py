"""Role repair: reconcile duplicate system roles and stale rows.

The roles table has no unique index on ``role_type`` (custom roles share
one value), so an interrupted or concurrent seed can leave two ``default``
roles behind. Repair keeps the lowest id of each system type, moves every
user assignment and category permission onto it, and deletes the rest.

Each role type is one transaction. Within it every re-pointed row gets its
own savepoint, so a row that conflicts with one already on the kept role is
logged and dropped instead of aborting the batch. Running repair on a clean
database changes nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DuplicateSystemRoleError
from ..models import CategoryPermission, RoleType, SYSTEM_ROLE_TYPES
from ..repositories import CategoryPermissionRepository, RoleRepository, UserRoleRepository
from ..services.identity import IdentityProvider
from ..services.role_registry import RoleRegistry
from .seeder import SeedResult, seed_all

logger = logging.getLogger(__name__)


@dataclass
class RepairResult:
    """Counts from one repair run."""

    duplicate_roles_removed: int = 0
    assignments_moved: int = 0
    assignments_dropped: int = 0
    permissions_moved: int = 0
    permissions_dropped: int = 0
    admin_permissions_pruned: int = 0
    role_types_restored: int = 0
    failed_role_types: List[str] = field(default_factory=list)


def _merge_assignments(db: Session, keep_id: int, duplicate_id: int, result: RepairResult) -> None:
    user_roles = UserRoleRepository(db)
    for assignment in user_roles.list_for_role(duplicate_id):
        if user_roles.find(assignment.user_id, keep_id) is not None:
            # Already holds the kept role; the leftover row is deleted below.
            result.assignments_dropped += 1
            continue
        savepoint = db.begin_nested()
        try:
            assignment.role_id = keep_id
            db.flush()
            savepoint.commit()
            result.assignments_moved += 1
        except IntegrityError as e:
            savepoint.rollback()
            result.assignments_dropped += 1
            logger.warning(
                "Could not move user role, dropping it",
                extra={"user_id": assignment.user_id, "from_role": duplicate_id, "to_role": keep_id, "error": str(e)},
            )
    user_roles.delete_for_role(duplicate_id)


def _merge_permissions(db: Session, keep_id: int, duplicate_id: int, result: RepairResult) -> None:
    perms = CategoryPermissionRepository(db)
    for row in perms.rows_for_role(duplicate_id):
        if perms.find(row.category_id, keep_id) is not None:
            result.permissions_dropped += 1
            continue
        savepoint = db.begin_nested()
        try:
            row.role_id = keep_id
            db.flush()
            savepoint.commit()
            result.permissions_moved += 1
        except IntegrityError as e:
            savepoint.rollback()
            result.permissions_dropped += 1
            logger.warning(
                "Could not move category permission, dropping it",
                extra={"category_id": row.category_id, "from_role": duplicate_id, "to_role": keep_id, "error": str(e)},
            )
    perms.delete_for_role(duplicate_id)


def cleanup_duplicate_roles(db: Session, result: Optional[RepairResult] = None) -> RepairResult:
    """Collapse every duplicated system role type onto its lowest id."""
    result = result or RepairResult()
    registry = RoleRegistry(db)
    role_repo = RoleRepository(db)

    for role_type in SYSTEM_ROLE_TYPES:
        try:
            registry.require_unique(role_type)
            continue
        except DuplicateSystemRoleError as dup:
            role_ids = dup.details["role_ids"]

        keep_id, duplicate_ids = role_ids[0], role_ids[1:]
        logger.info(
            "Merging duplicate system roles",
            extra={"role_type": role_type.value, "keep_id": keep_id, "duplicate_ids": duplicate_ids},
        )
        try:
            for duplicate_id in duplicate_ids:
                _merge_assignments(db, keep_id, duplicate_id, result)
                _merge_permissions(db, keep_id, duplicate_id, result)
                role_repo.delete(role_repo.get_by_id(duplicate_id))
            db.commit()
            result.duplicate_roles_removed += len(duplicate_ids)
        except SQLAlchemyError:
            db.rollback()
            result.failed_role_types.append(role_type.value)
            logger.error(
                "Duplicate role cleanup failed",
                extra={"role_type": role_type.value, "role_ids": role_ids},
                exc_info=True,
            )
    return result


def prune_admin_permissions(db: Session) -> int:
    """Delete category rows attached to admin roles. Returns rows removed."""
    admin_ids = [role.id for role in RoleRepository(db).list_by_type(RoleType.ADMIN.value)]
    if not admin_ids:
        return 0
    removed = db.query(CategoryPermission).filter(
        CategoryPermission.role_id.in_(admin_ids)
    ).delete(synchronize_session=False)
    db.commit()
    if removed:
        logger.info("Pruned admin category permissions", extra={"count": removed})
    return removed


def restore_role_types(db: Session) -> int:
    """Give roles without a type the ``custom`` type. Returns roles updated."""
    roles = RoleRepository(db).list_untyped()
    for role in roles:
        role.role_type = RoleType.CUSTOM.value
    db.commit()
    if roles:
        logger.info("Restored missing role types", extra={"count": len(roles)})
    return len(roles)


def repair_roles(db: Session) -> RepairResult:
    """Run every role repair step."""
    result = RepairResult()
    result.role_types_restored = restore_role_types(db)
    cleanup_duplicate_roles(db, result)
    result.admin_permissions_pruned = prune_admin_permissions(db)
    return result


def repair_and_seed(db: Session, identity: IdentityProvider) -> tuple[RepairResult, SeedResult]:
    """Repair roles, then seed whatever is missing.

    Repair goes first so seeding sees at most one role per system type.
    """
    repair = repair_roles(db)
    seed = seed_all(db, identity)
    return repair, seed
