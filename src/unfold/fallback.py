"""Small fixed demo dataset used when a repository yields nothing."""

from __future__ import annotations

from .models import EntryType, KnowledgeEntry

_FALLBACK_ROWS: list[tuple[EntryType, str, str, list[str], dict[str, str]]] = [
    (
        EntryType.comment,
        "/** Processes subscription payments through Stripe integration */",
        "ghost/core/core/server/services/members/payment.js",
        ["subscription", "payment", "process", "stripe", "members"],
        {},
    ),
    (
        EntryType.comment,
        "/** When subscription expires, member status is changed to free */",
        "ghost/core/core/server/services/members/subscriptions.js",
        ["subscription", "expires", "expiration", "member", "free"],
        {},
    ),
    (
        EntryType.function,
        "function handleSubscriptionExpiration(memberId) { ... }",
        "ghost/core/core/server/services/members/api/index.js",
        ["subscription", "expiration", "handle", "member"],
        {"name": "handleSubscriptionExpiration", "params": "memberId"},
    ),
    (
        EntryType.comment,
        "/** No limits on post count in Ghost - verified in post access controller */",
        "ghost/core/core/server/api/v2/content/posts.js",
        ["limits", "posts", "count", "restriction"],
        {},
    ),
    (
        EntryType.comment,
        "/** Premium content restricted to paid members via visibility settings */",
        "ghost/core/core/server/api/v2/content/posts.js",
        ["premium", "content", "paid", "members", "visibility"],
        {},
    ),
    (
        EntryType.comment,
        "/** Ghost subscription management handles tier upgrades and downgrades */",
        "ghost/core/core/server/services/members/subscriptions.js",
        ["subscription", "upgrade", "downgrade", "tier", "management"],
        {},
    ),
    (
        EntryType.function,
        "function processMemberTierChange(memberId, fromTierId, toTierId) { ... }",
        "ghost/core/core/server/services/members/api/index.js",
        ["tier", "change", "process", "member"],
        {"name": "processMemberTierChange", "params": "memberId, fromTierId, toTierId"},
    ),
    (
        EntryType.comment,
        "/** Email features require newsletter subscription status to be active */",
        "ghost/core/core/server/services/mail/index.js",
        ["email", "newsletter", "subscription", "active"],
        {},
    ),
]


def fallback_entries() -> list[KnowledgeEntry]:
    """Fresh copies of the demo entries (ids ``fallback-1`` ...)."""
    return [
        KnowledgeEntry(
            id=f"fallback-{i}",
            type=entry_type,
            content=content,
            file_path=file_path,
            keywords=list(keywords),
            metadata={**metadata, "fallback": True},
        )
        for i, (entry_type, content, file_path, keywords, metadata) in enumerate(_FALLBACK_ROWS, start=1)
    ]
