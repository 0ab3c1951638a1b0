"""
Resource naming.

Every collection and container name is derived from a project id with these
pure functions, so every backend sees the same logical names. Backends map
the logical name onto their own naming rules (see adapters/aws).
"""

SERVICE_NAME = "buildshelf"

COLLECTION_SUFFIXES = ("", "builds", "tags")


def generate_collection_id(project_id: str, suffix: str = "") -> str:
    """
    Collection id for a project.

        generate_collection_id("docs")            -> "buildshelf-docs"
        generate_collection_id("docs", "builds")  -> "buildshelf-docs-builds"
    """
    if suffix not in COLLECTION_SUFFIXES:
        raise ValueError(f"Unknown collection suffix '{suffix}'. Expected one of {COLLECTION_SUFFIXES}")
    if suffix:
        return f"{SERVICE_NAME}-{project_id}-{suffix}"
    return f"{SERVICE_NAME}-{project_id}"


def generate_container_id(project_id: str) -> str:
    return f"{SERVICE_NAME}-{project_id}"
