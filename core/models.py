#!/usr/bin/env python3
"""
models.py — Shared content schema for the siteboard pipeline
-------------------------------------------------------------
Two families of dataclasses live here:

  • *Raw* records, shaped like the SQLite rows the stores return.
    Some carry per-viewer columns (vote, bookmark, watch) joined in
    by the store for a specific ``for_user_id``.
  • *Info* view-models, the denormalized shapes handed back to
    callers. They are built fresh for every request.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

ContentFormat = Literal["html", "source"]

NOTIFY_MENTION = "mention"
NOTIFY_ANSWER = "answer"


# ───────────────────────────────
# Directory records
# ───────────────────────────────
@dataclass
class Site:
    site_id: int
    site: str
    name: str = ""
    created_at: Optional[str] = None


@dataclass
class User:
    user_id: int
    username: str
    created_at: Optional[str] = None


# ───────────────────────────────
# Raw content records
# ───────────────────────────────
@dataclass
class PostRaw:
    """
    A stored post.

    Fields:
      - post_id: store-assigned identity, never reassigned
      - site_id: owning site
      - author_id: user who wrote the post
      - title / source / html: raw markup and its rendered form
      - rating, comments, last_comment_id: aggregates kept by the store
    """

    post_id: int
    site_id: int
    author_id: int
    title: str
    source: str
    html: str
    created_at: str
    rating: int = 0
    comments: int = 0
    last_comment_id: Optional[int] = None


@dataclass
class PostRawWithUserData(PostRaw):
    vote: int = 0
    bookmark: bool = False
    watch: bool = False
    read_comments: int = 0


@dataclass
class CommentRaw:
    """
    A stored comment.

    ``parent_comment_id`` is None for a reply to the post itself; otherwise
    it references another comment of the same post. ``site_id`` is joined
    in from the owning post.
    """

    comment_id: int
    post_id: int
    site_id: int
    author_id: int
    source: str
    html: str
    created_at: str
    parent_comment_id: Optional[int] = None
    rating: int = 0
    deleted: bool = False


@dataclass
class CommentRawWithUserData(CommentRaw):
    vote: int = 0


@dataclass
class Bookmark:
    post_id: int
    user_id: int
    bookmark: bool = False
    watch: bool = False
    read_comments: int = 0
    last_read_comment_id: Optional[int] = None


@dataclass
class Notification:
    notification_id: int
    user_id: int
    type: str
    post_id: int
    from_user_id: int
    comment_id: Optional[int] = None
    read: bool = False
    created_at: Optional[str] = None


# ───────────────────────────────
# Parser output
# ───────────────────────────────
@dataclass
class ParseResult:
    text: str
    mentions: List[str] = field(default_factory=list)


# ───────────────────────────────
# View-models
# ───────────────────────────────
@dataclass
class PostInfo:
    id: int
    site: str
    author: int
    created: str
    title: str
    content: str
    rating: int
    comments: int
    new_comments: int
    vote: int
    bookmark: bool
    watch: bool


@dataclass
class CommentInfo:
    id: int
    post: int
    site: str
    content: str
    author: int
    created: str
    deleted: bool
    rating: int
    parent_comment: Optional[int]
    vote: int


@dataclass
class DispatchResult:
    """Outcome of one notification attempt made while authoring content."""

    target: Any
    type: str
    ok: bool
    error: Optional[str] = None


# ───────────────────────────────
# Utility for conversion
# ───────────────────────────────
def from_dict(data: Dict[str, Any], cls):
    """Instantiate a dataclass from a dict (or sqlite3.Row), ignoring unknown keys.

    SQLite stores booleans as 0/1, so fields declared ``bool`` are coerced.
    """
    if not isinstance(data, dict):
        data = dict(data)
    fields = cls.__dataclass_fields__
    kwargs = {}
    for k, v in data.items():
        if k not in fields:
            continue
        if fields[k].type is bool and v is not None:
            v = bool(v)
        kwargs[k] = v
    return cls(**kwargs)
