"""Maintenance command line for the forum core (``forum-admin``).

Examples:
  forum-admin init-db
  forum-admin repair-seeds --admin alice --user bob --user carol
  forum-admin set-role bob moderator
  forum-admin rebuild-stats
  forum-admin search '"release notes" (beta OR rc) -draft' --user bob
"""

import argparse
import logging
import sys
import uuid
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .core.config import ConfigurationError, settings
from .core.logging_config import log_context, setup_logging
from .core.repair import repair_and_seed
from .database import build_engine, init_db, make_session_factory, session_scope
from .exceptions import ForumException
from .services.identity import StaticIdentityProvider
from .services.role_service import RoleService
from .services.search_service import SearchService
from .services.stats_service import StatsService

logger = logging.getLogger(__name__)


def _cmd_init_db(args, engine, factory) -> int:
    init_db(engine)
    print("Database tables are up to date")
    return 0


def _cmd_repair_seeds(args, engine, factory) -> int:
    init_db(engine)
    admins = list(dict.fromkeys(settings.get_admin_user_ids() + (args.admin or [])))
    identity = StaticIdentityProvider(user_ids=args.user or [], admin_ids=admins)

    with session_scope(factory) as db:
        repair, seed = repair_and_seed(db, identity)

    print("Repair:")
    print(f"  duplicate roles removed:  {repair.duplicate_roles_removed}")
    print(f"  assignments moved:        {repair.assignments_moved}")
    print(f"  permissions moved:        {repair.permissions_moved}")
    print(f"  admin permissions pruned: {repair.admin_permissions_pruned}")
    print(f"  role types restored:      {repair.role_types_restored}")
    print("Seed:")
    print(f"  roles:       {seed.roles_created}")
    print(f"  headers:     {seed.headers_created}")
    print(f"  categories:  {seed.categories_created}")
    print(f"  permissions: {seed.permissions_created}")
    print(f"  user roles:  {seed.assignments_created}")
    print(f"  threads:     {seed.threads_created}")

    failed = repair.failed_role_types + seed.failed_steps
    if failed:
        print(f"Failed steps: {', '.join(failed)}", file=sys.stderr)
        return 1
    return 0


def _cmd_set_role(args, engine, factory) -> int:
    with session_scope(factory) as db:
        service = RoleService(db)
        role = service.find_role(args.role)
        role_name = role.name
        assignment = service.assign_role(args.user_id, role.id)

    if assignment is None:
        print(f"User '{args.user_id}' already has role '{role_name}'")
    else:
        print(f"Assigned role '{role_name}' to user '{args.user_id}'")
    return 0


def _cmd_rebuild_stats(args, engine, factory) -> int:
    with session_scope(factory) as db:
        stats = StatsService(db)
        threads = stats.rebuild_all_thread_stats()
        categories = stats.rebuild_all_category_stats()
    print(f"Rebuilt stats for {threads} threads and {categories} categories")
    return 0


def _cmd_search(args, engine, factory) -> int:
    with session_scope(factory) as db:
        results = SearchService(db).search(
            args.query,
            user_id=args.user,
            search_threads=not args.posts_only,
            search_posts=not args.threads_only,
            category_id=args.category,
            limit=args.limit,
            offset=args.offset,
        )

    if not args.posts_only:
        print(f"Threads ({results.thread_count} total):")
        for thread in results.threads:
            print(f"  #{thread.id} [{thread.category_id}] {thread.title}")
    if not args.threads_only:
        print(f"Posts ({results.post_count} total):")
        for post in results.posts:
            snippet = " ".join(post.content.split())[:80]
            print(f"  #{post.id} (thread {post.thread_id}) {snippet}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forum-admin",
        description="Forum maintenance: schema, role repair, seeding, stats and search",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Override DATABASE_URL from the environment",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create missing tables")
    p.set_defaults(handler=_cmd_init_db)

    p = sub.add_parser("repair-seeds", help="Repair duplicate roles and seed default data")
    p.add_argument(
        "--admin",
        action="append",
        metavar="USER",
        help="Platform administrator to provision (repeatable, added to ADMIN_USER_IDS)",
    )
    p.add_argument(
        "--user",
        action="append",
        metavar="USER",
        help="Regular user to provision (repeatable)",
    )
    p.set_defaults(handler=_cmd_repair_seeds)

    p = sub.add_parser("set-role", help="Assign a role to a user")
    p.add_argument("user_id", help="User id on the host platform")
    p.add_argument("role", help="Role id or case-insensitive role name")
    p.set_defaults(handler=_cmd_set_role)

    p = sub.add_parser("rebuild-stats", help="Recompute thread and category counters")
    p.set_defaults(handler=_cmd_rebuild_stats)

    p = sub.add_parser("search", help="Run a search as a given user")
    p.add_argument("query", help="Search query")
    p.add_argument("--user", default=None, help="Search as this user (default: anonymous)")
    p.add_argument("--category", type=int, default=None, help="Restrict to one category id")
    scope = p.add_mutually_exclusive_group()
    scope.add_argument("--threads-only", action="store_true", help="Search threads only")
    scope.add_argument("--posts-only", action="store_true", help="Search posts only")
    p.add_argument("--limit", type=int, default=None, help="Results per list")
    p.add_argument("--offset", type=int, default=0, help="Results to skip per list")
    p.set_defaults(handler=_cmd_search)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(settings.log_level, settings.log_format)
    logger.info(f"Environment: {settings.environment.value}")
    try:
        settings.validate_production_config()
    except ConfigurationError as e:
        logger.critical(f"Refusing to run: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    engine = build_engine(args.database_url)
    factory = make_session_factory(engine)
    # search runs as --user; set-role acts on user_id
    acting_user = getattr(args, "user_id", None) or (args.user if args.command == "search" else None)
    with log_context(request_id=f"cli-{uuid.uuid4().hex[:12]}", acting_user=acting_user):
        try:
            return args.handler(args, engine, factory)
        except ForumException as e:
            logger.warning(f"{args.command} failed: {e.message}")
            print(f"Error: {e.message}", file=sys.stderr)
            return 1
        except SQLAlchemyError as e:
            logger.error(f"{args.command} failed with a database error: {e}")
            print(f"Database error: {e}", file=sys.stderr)
            return 1
        finally:
            engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
