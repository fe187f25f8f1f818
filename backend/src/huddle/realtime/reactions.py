"""One reaction per user per message.

Reactions are stored as a list of ``{"emoji": str, "users": [user_id, ...]}``
entries. :func:`toggle_reaction` never mutates its input so the caller can
assign the result back to a JSON column and have the change detected.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence


def normalize_reactions(reactions: Iterable[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Copy ``reactions`` dropping malformed or empty entries."""

    normalized: list[dict[str, Any]] = []
    for entry in reactions or ():
        emoji = entry.get("emoji") if isinstance(entry, dict) else None
        if not emoji:
            continue
        users: list[int] = []
        for user_id in entry.get("users") or ():
            if user_id not in users:
                users.append(user_id)
        if users:
            normalized.append({"emoji": emoji, "users": users})
    return normalized


def reaction_of(reactions: Sequence[dict[str, Any]], user_id: int) -> str | None:
    for entry in reactions:
        if user_id in entry.get("users", ()):
            return entry.get("emoji")
    return None


def toggle_reaction(
    reactions: Iterable[dict[str, Any]] | None, emoji: str, user_id: int
) -> tuple[list[dict[str, Any]], bool]:
    """Apply a reaction from ``user_id`` and return ``(reactions, added)``.

    The user's previous reaction, if any, is removed first. Reacting again
    with the same emoji only removes it; a different emoji replaces it.
    """

    updated = normalize_reactions(reactions)
    previous: str | None = None
    for entry in list(updated):
        if user_id in entry["users"]:
            previous = entry["emoji"]
            entry["users"].remove(user_id)
            if not entry["users"]:
                updated.remove(entry)

    if previous == emoji:
        return updated, False

    for entry in updated:
        if entry["emoji"] == emoji:
            entry["users"].append(user_id)
            break
    else:
        updated.append({"emoji": emoji, "users": [user_id]})
    return updated, True
