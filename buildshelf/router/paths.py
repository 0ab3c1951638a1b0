"""
Path pattern helpers for the Router.

Pattern syntax:
  /projects/:projectId          named segment, captured as "projectId"
  /builds/:buildId/*            trailing wildcard, captured as "*" ("" when nothing follows)

The same normalisation rule applies to patterns and request paths: always a
leading "/", exactly one trailing "/" stripped, root stays "/".
"""

import re
from urllib.parse import unquote

WILDCARD = "*"
_WILDCARD_GROUP = "wildcard"


def normalize_path(path: str) -> str:
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def strip_prefix(path: str, prefix: str) -> str:
    """Remove a routing prefix when the path equals it or continues with "/"."""
    if not prefix:
        return path
    prefix = normalize_path(prefix)
    if prefix == "/":
        return path
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix):]
    return path


def join_paths(prefix: str, pattern: str) -> str:
    prefix = normalize_path(prefix)
    pattern = normalize_path(pattern)
    if prefix == "/":
        return pattern
    if pattern == "/":
        return prefix
    return prefix + pattern


def compile_pattern(pattern: str) -> tuple[re.Pattern, list[str]]:
    """
    Compile a route pattern to a regex.

    Returns:
        (regex, param_names) where param_names[i] is the name captured by group p{i}
    """
    pattern = normalize_path(pattern)
    segments = pattern.split("/")[1:]
    param_names: list[str] = []
    parts: list[str] = []

    has_wildcard = bool(segments) and segments[-1] == WILDCARD
    if has_wildcard:
        segments = segments[:-1]

    for segment in segments:
        if segment.startswith(":") and len(segment) > 1:
            parts.append(f"/(?P<p{len(param_names)}>[^/]+)")
            param_names.append(segment[1:])
        elif segment:
            parts.append("/" + re.escape(segment))

    body = "".join(parts)
    if has_wildcard:
        body += f"(?:/(?P<{_WILDCARD_GROUP}>.*))?"
        param_names.append(WILDCARD)
    elif not body:
        body = "/"

    return re.compile(f"^{body}$"), param_names


def match_path(regex: re.Pattern, param_names: list[str], path: str) -> dict[str, str] | None:
    """Match a normalised path. Returns URL-decoded params, or None."""
    match = regex.match(path)
    if match is None:
        return None
    params: dict[str, str] = {}
    for i, name in enumerate(param_names):
        if name == WILDCARD:
            params[name] = unquote(match.group(_WILDCARD_GROUP) or "")
        else:
            params[name] = unquote(match.group(f"p{i}"))
    return params
