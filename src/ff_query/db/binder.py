"""
Positional parameter binder.

Rendering code appends a value at the exact moment it writes the matching
``?`` into the statement text, so the Nth placeholder always pairs with the
Nth value.
"""

from typing import Any, Iterable, List, Optional

from ..exceptions import ParameterCountMismatch

PLACEHOLDER = "?"


class ParameterBinder:
    """Append-only list of bound values for one statement build."""

    def __init__(self):
        self._values: List[Any] = []

    def append(self, value: Any) -> str:
        """Bind one value and return its placeholder."""
        self._values.append(value)
        return PLACEHOLDER

    def append_many(self, values: Iterable[Any]) -> List[str]:
        """Bind each value in order and return one placeholder per value."""
        return [self.append(value) for value in values]

    def extend(self, values: Iterable[Any]) -> None:
        """Merge values bound by a nested build (subqueries) without new placeholders."""
        self._values.extend(values)

    def drain(self) -> List[Any]:
        """Return the bound values in order and empty the binder."""
        values, self._values = self._values, []
        return values

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ParameterBinder(values={self._values!r})"


def count_placeholders(sql: str, backslash_escapes: bool = False) -> int:
    """
    Count ``?`` placeholders outside quoted literals and identifiers.

    Args:
        sql: Statement text using ``?`` placeholders
        backslash_escapes: Treat ``\\'`` inside string literals as an escaped quote (MySQL)

    Returns:
        Number of placeholders
    """
    return sum(1 for kind, _ in tokenize_placeholders(sql, backslash_escapes) if kind == "placeholder")


def check_placeholders(sql: str, values: int, backslash_escapes: Optional[bool] = None) -> None:
    """
    Check that ``sql`` has one placeholder per bound value.

    With ``backslash_escapes`` left as None the dialect is not known yet and
    either escaping convention is accepted; the engine checks again against
    its dialect before executing.

    Raises:
        ParameterCountMismatch: If the counts differ
    """
    if backslash_escapes is None:
        counts = {count_placeholders(sql), count_placeholders(sql, backslash_escapes=True)}
    else:
        counts = {count_placeholders(sql, backslash_escapes)}
    if values not in counts:
        raise ParameterCountMismatch(min(counts), values)


def tokenize_placeholders(sql: str, backslash_escapes: bool = False):
    """
    Split SQL into ``("text", chunk)`` and ``("placeholder", "?")`` tokens.

    Question marks inside '...', "...", `...` and [...] are left as text, as
    are those in ``--`` and ``/* */`` comments. A doubled quote is always an
    escaped quote; with ``backslash_escapes`` a backslash escapes the next
    character inside '...' and "..." as well.
    """
    chunk = []
    i = 0
    length = len(sql)
    while i < length:
        char = sql[i]
        if char in ("'", '"', "`"):
            end = i + 1
            while end < length:
                if backslash_escapes and char != "`" and sql[end] == "\\":
                    end += 2
                    continue
                if sql[end] == char:
                    # Doubled quote is an escaped quote
                    if end + 1 < length and sql[end + 1] == char:
                        end += 2
                        continue
                    break
                end += 1
            chunk.append(sql[i : end + 1])
            i = end + 1
        elif char == "[":
            end = sql.find("]", i)
            end = length - 1 if end == -1 else end
            chunk.append(sql[i : end + 1])
            i = end + 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            end = length if end == -1 else end
            chunk.append(sql[i:end])
            i = end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            end = length if end == -1 else end + 2
            chunk.append(sql[i:end])
            i = end
        elif char == PLACEHOLDER:
            if chunk:
                yield "text", "".join(chunk)
                chunk = []
            yield "placeholder", PLACEHOLDER
            i += 1
        else:
            chunk.append(char)
            i += 1
    if chunk:
        yield "text", "".join(chunk)
