"""
=============================================================================
PATH PATTERNS
=============================================================================

A route template is compiled once, at registration, into an anchored regex:

    Template:  /users/:id/posts/:post_id
                  │     │         │
                  ▼     ▼         ▼
    Regex:     ^/users/(?P<id>[^/]+)/posts/(?P<post_id>[^/]+)$
                       ─────────────        ──────────────────
                       Named capture        Named capture
                       group for :id        group for :post_id

Segment kinds:

    literal   users     → must appear exactly (regex-escaped)
    param     :id       → any ONE non-empty segment, captured as "id"

Matching is over the FULL path, never a prefix:

    /echo      matches  /echo
               not      /echo/123, /echo/
    /echo/:id  matches  /echo/123 → {"id": "123"}
               not      /echo, /echo/, /echo/123/extra

=============================================================================
"""

import re
from typing import Dict, List, Optional


_PARAM_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def normalize_path(path: str) -> str:
    """
    Ensure a path starts with ``/``.

    Applied to both route templates and request paths, so ``"echo"`` and
    ``"/echo"`` register the same route.
    """
    if path.startswith("/"):
        return path
    return f"/{path}"


class PathPattern:
    """
    A compiled route template.

    Usage:
        pattern = PathPattern("echo/:id")
        pattern.template                # "/echo/:id"
        pattern.match("/echo/123")      # {"id": "123"}
        pattern.match("/echo")          # None
        pattern.test("/echo/123")       # True
    """

    __slots__ = ("template", "param_names", "_regex")

    def __init__(self, template: str):
        self.template = normalize_path(template)
        self.param_names: List[str] = []
        self._regex = self._compile(self.template)

    def _compile(self, template: str) -> "re.Pattern[str]":
        """
        Compile the template into an anchored regex.

        Splitting on "/" keeps empty segments, so a trailing slash in the
        template stays significant ("/echo/" only matches "/echo/").
        """
        regex_parts = ["^"]

        # template always starts with "/", so segments[0] == ""
        segments = template.split("/")[1:]
        for segment in segments:
            regex_parts.append("/")

            if segment.startswith(":"):
                name = segment[1:]
                if not _PARAM_NAME.match(name):
                    raise ValueError(
                        f"Invalid parameter name {name!r} in route {template!r}"
                    )
                if name in self.param_names:
                    raise ValueError(
                        f"Duplicate parameter {name!r} in route {template!r}"
                    )
                self.param_names.append(name)
                # one non-empty segment, no slashes
                regex_parts.append(f"(?P<{name}>[^/]+)")
            else:
                regex_parts.append(re.escape(segment))

        regex_parts.append("$")
        return re.compile("".join(regex_parts))

    def match(self, path: str) -> Optional[Dict[str, str]]:
        """
        Match a request path.

        Returns:
            Mapping of parameter name → matched segment ({} for literal
            templates), or None if the path does not match.
        """
        found = self._regex.match(path)
        if found is None:
            return None
        return found.groupdict()

    def test(self, path: str) -> bool:
        """True if the path matches this template."""
        return self._regex.match(path) is not None

    @property
    def is_static(self) -> bool:
        """True if the template has no parameter segments."""
        return not self.param_names

    def __repr__(self) -> str:
        return f"PathPattern({self.template!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PathPattern):
            return NotImplemented
        return self.template == other.template

    def __hash__(self) -> int:
        return hash(self.template)
