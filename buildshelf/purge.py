"""
Build purging — removes build artifacts and records that are no longer needed.

Runs inside a request scope: backends come from the active context, so the
same code serves an HTTP admin route, a scheduled function or a test.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from buildshelf.context import current_database, current_logger, current_storage
from buildshelf.errors.exceptions import DocumentNotFound
from buildshelf.models.query import ListQuery
from buildshelf.naming import generate_collection_id, generate_container_id

DEFAULT_PURGE_AFTER_DAYS = 30


def _parse_timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def purge_build(project_id: str, build_id: str) -> None:
    """Delete a build's files and its record. A build without a record still loses its files."""
    log = current_logger()
    await current_storage().delete_files(generate_container_id(project_id), f"{build_id}/")
    try:
        await current_database().delete_document(generate_collection_id(project_id, "builds"), build_id)
    except DocumentNotFound:
        log.warning(f"[Project: {project_id}] Build {build_id} had no record, files removed")
    log.info(f"[Project: {project_id}] Purged build {build_id}")


async def purge_expired_builds(
    project_id: str,
    older_than_days: int = DEFAULT_PURGE_AFTER_DAYS,
    keep_build_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[str]:
    """
    Purge builds last modified more than `older_than_days` ago.

    Args:
        project_id: Project whose builds are scanned
        older_than_days: Age threshold, measured on updatedAt (createdAt as fallback)
        keep_build_id: A build that is never purged (usually the latest one)
        now: Reference time, for tests

    Returns:
        Ids of the purged builds
    """
    log = current_logger()
    expiry = (now or datetime.now(timezone.utc)) - timedelta(days=older_than_days)
    log.info(
        f"[Project: {project_id}] Purge builds last modified more than "
        f"{older_than_days} days ago (before {expiry.isoformat()})"
    )

    def is_expired(build: dict) -> bool:
        if build.get("id") == keep_build_id:
            return False
        modified = _parse_timestamp(build.get("updatedAt") or build.get("createdAt"))
        return modified is not None and modified < expiry

    builds = await current_database().list_documents(
        generate_collection_id(project_id, "builds"), ListQuery(filter=is_expired)
    )
    purged = []
    for build in builds:
        await purge_build(project_id, build["id"])
        purged.append(build["id"])

    log.info(f"[Project: {project_id}] Purged {len(purged)} expired builds")
    return purged


async def purge_empty_tags(project_id: str, keep_branch: Optional[str] = None) -> list[str]:
    """
    Delete tags that no longer point at any build.

    Args:
        project_id: Project whose tags are scanned
        keep_branch: Branch tag kept even when empty (usually the default branch)

    Returns:
        Ids of the deleted tags
    """
    def is_empty(tag: dict) -> bool:
        if tag.get("type") == "branch" and keep_branch is not None and tag.get("value") == keep_branch:
            return False
        return tag.get("buildsCount", 0) == 0

    collection_id = generate_collection_id(project_id, "tags")
    database = current_database()
    tags = await database.list_documents(collection_id, ListQuery(filter=is_empty))
    for tag in tags:
        await database.delete_document(collection_id, tag["id"])

    current_logger().info(f"[Project: {project_id}] Purged {len(tags)} empty tags")
    return [tag["id"] for tag in tags]
