"""Traversal helpers over decoded comment trees."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from grawpy.things._models import Comment


class CommentTree:
    """
    Read-only view over a list of top-level comments and their replies.

    Traversal is depth-first, pre-order, iterative, so it is not bounded by
    the interpreter's recursion limit.

    Example:
        >>> tree = CommentTree(page.comments)
        >>> tree.count(), tree.depth()
        (42, 5)
        >>> [c.id for c in tree.get_by_author("spez")]
        ['c1', 'c9']
    """

    def __init__(self, comments: list[Comment] | None = None):
        self._roots = list(comments or [])

    def __iter__(self) -> Iterator[Comment]:
        stack = list(reversed(self._roots))
        while stack:
            comment = stack.pop()
            yield comment
            stack.extend(reversed(comment.replies))

    def __len__(self) -> int:
        return self.count()

    def flatten(self) -> list[Comment]:
        return list(self)

    def filter(self, predicate: Callable[[Comment], bool]) -> list[Comment]:
        return [c for c in self if predicate(c)]

    def find(self, predicate: Callable[[Comment], bool]) -> Comment | None:
        return next((c for c in self if predicate(c)), None)

    def get_by_id(self, comment_id: str) -> Comment | None:
        return self.find(lambda c: c.id == comment_id)

    def get_by_author(self, author: str) -> list[Comment]:
        return self.filter(lambda c: c.author == author)

    def top_level(self) -> list[Comment]:
        return list(self._roots)

    def depth(self) -> int:
        """Deepest reply level: 0 when empty or when only top-level comments exist."""
        deepest = 0
        stack = [(c, 0) for c in self._roots]
        while stack:
            comment, level = stack.pop()
            deepest = max(deepest, level)
            stack.extend((reply, level + 1) for reply in comment.replies)
        return deepest

    def count(self) -> int:
        return sum(1 for _ in self)

    def walk(self, fn: Callable[[Comment], None]) -> None:
        for comment in self:
            fn(comment)
