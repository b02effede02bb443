"""
URL pattern matching for mock dispatch.

Pattern syntax:
- `{name}` or `:name` binds exactly one non-empty path segment
  (no `/`, no line breaks)
- `*` matches any remainder, including `/`
- `.` and `?` are literals

In the default (compatible) mode every other regex metacharacter in a
pattern keeps its regex meaning, so `/v(1|2)/items` matches `/v1/items`.
Strict mode escapes all literal text instead.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

# `{name}` first, then `:name` running to the next slash.
_PARAM_RE = re.compile(r"\{([^}]+)\}|:([^/]+)")


class MatchableEndpoint(Protocol):
    method: str
    url_pattern: str
    is_active: bool
    created_at: datetime


@dataclass(frozen=True)
class CompiledPattern:
    regex: re.Pattern
    param_names: Tuple[str, ...]

    def match(self, path: str) -> Optional[re.Match]:
        return self.regex.fullmatch(path)


def _translate_literal(text: str, strict: bool) -> str:
    if strict:
        return ".*".join(re.escape(chunk) for chunk in text.split("*"))
    return text.replace(".", r"\.").replace("?", r"\?").replace("*", ".*")


def translate_pattern(pattern: str, strict: bool = False) -> Tuple[str, Tuple[str, ...]]:
    """
    Translate a URL pattern into a regex source anchored at both ends.

    Parameters become named groups `_p0`, `_p1`, ... in declaration order,
    so regex groups written literally in the pattern never shift them.

    Returns:
        (regex_source, param_names)
    """
    parts: List[str] = []
    names: List[str] = []
    position = 0

    for match in _PARAM_RE.finditer(pattern):
        parts.append(_translate_literal(pattern[position:match.start()], strict))
        parts.append(rf"(?P<_p{len(names)}>[^/\n]+)")
        names.append(match.group(1) if match.group(1) is not None else match.group(2))
        position = match.end()

    parts.append(_translate_literal(pattern[position:], strict))
    return "^" + "".join(parts) + r"\Z", tuple(names)


@lru_cache(maxsize=2048)
def compile_pattern(pattern: str, strict: bool = False) -> Optional[CompiledPattern]:
    """
    Compile (and cache) a pattern. Returns None when the regex is invalid.
    """
    source, names = translate_pattern(pattern, strict)
    try:
        return CompiledPattern(regex=re.compile(source), param_names=names)
    except re.error as exc:
        logger.warning(f"Invalid URL pattern {pattern!r}: {exc}")
        return None


class PatternMatcher:
    """
    Decides whether request paths match stored patterns and ranks matches.

    Stateless apart from the `strict` flag; one instance serves the process.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict

    # ─────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────

    def matches(self, path: str, pattern: str) -> bool:
        if path == pattern:
            return True

        compiled = compile_pattern(pattern, self.strict)
        if compiled is None:
            return False

        return compiled.match(path) is not None

    def find_best_match(
        self,
        path: str,
        method: str,
        endpoints: Iterable[MatchableEndpoint],
    ) -> Optional[MatchableEndpoint]:
        """
        Pick the single best endpoint for `method` + `path`.

        Ranking:
            1. pattern identical to the path
            2. longer pattern
            3. newer created_at
        """
        candidates = [
            endpoint
            for endpoint in endpoints
            if endpoint.method == method
            and endpoint.is_active
            and self.matches(path, endpoint.url_pattern)
        ]

        if not candidates:
            return None

        # Two stable sorts: newest first, then exactness and length on top.
        candidates.sort(key=lambda e: e.created_at, reverse=True)
        candidates.sort(key=lambda e: (e.url_pattern != path, -len(e.url_pattern)))

        return candidates[0]

    def extract_path_parameters(self, path: str, pattern: str) -> Dict[str, str]:
        """
        Map parameter names in `pattern` to the segments they captured.

        Returns an empty dict when nothing matches or the pattern is invalid.
        """
        compiled = compile_pattern(pattern, self.strict)
        if compiled is None or not compiled.param_names:
            return {}

        match = compiled.match(path)
        if match is None:
            return {}

        params: Dict[str, str] = {}
        for index, name in enumerate(compiled.param_names):
            value = match.group(f"_p{index}")
            if value:
                params[name] = value

        return params
