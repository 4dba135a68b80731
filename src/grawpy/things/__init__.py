"""
Reddit "things": envelope models, decoding and comment tree reconstruction.

Main Classes:
    - Envelope: The wire-level {kind, data} tagged union.
    - ThingKind: Enum with the supported discriminator values.
    - Listing, Comment, Post, Account, Message, Subreddit, MoreMarker: Typed records.
    - Edited, Replies: Sum-type wire fields resolved at decode time.
    - EnvelopeDecoder: Decodes one envelope into one validated record.
    - TreeBuilder: Rebuilds comment trees with depth and cycle protection.
    - ParseContext, ParseContextPool: Per-decode scratch state and its pool.
    - CommentsPage: Post + comments result with explicit partial success.
    - CommentTree: Traversal helpers over decoded trees.
"""

from grawpy.things._comment_tree import CommentTree
from grawpy.things._decoder import EnvelopeDecoder
from grawpy.things._models import (
    Account,
    Comment,
    CommentsPage,
    Edited,
    EditedState,
    Envelope,
    Listing,
    Message,
    MoreMarker,
    Post,
    Replies,
    Subreddit,
    Thing,
    ThingKind,
)
from grawpy.things._tree import (
    DEFAULT_MAX_DEPTH,
    ParseContext,
    ParseContextPool,
    TreeBuilder,
)

__all__ = [
    # Models
    "Envelope",
    "ThingKind",
    "Thing",
    "Listing",
    "Comment",
    "Post",
    "Account",
    "Message",
    "Subreddit",
    "MoreMarker",
    "Edited",
    "EditedState",
    "Replies",
    "CommentsPage",
    # Decoding
    "EnvelopeDecoder",
    "TreeBuilder",
    "ParseContext",
    "ParseContextPool",
    "DEFAULT_MAX_DEPTH",
    # Utilities
    "CommentTree",
]
