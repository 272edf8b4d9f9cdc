from collections.abc import Iterable
from typing import Any


def _ordered(turns: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    indexed = list(enumerate(turns))
    # Equal timestamps keep insertion order.
    indexed.sort(key=lambda pair: (str(pair[1].get("created_at") or ""), pair[0]))
    return [turn for _, turn in indexed]


def _eligible(turns: Iterable[dict[str, Any]], exclude_turn_id: int | None) -> list[dict[str, Any]]:
    selected = []
    for turn in _ordered(turns):
        if not isinstance(turn, dict):
            continue
        if bool(turn.get("is_weather")):
            continue
        if exclude_turn_id is not None and turn.get("id") == exclude_turn_id:
            continue
        selected.append(turn)
    return selected


def build_context(
    turns: Iterable[dict[str, Any]],
    new_message: str,
    exclude_turn_id: int | None = None,
) -> list[str]:
    """Prior non-weather turn texts in chronological order, new message last."""
    context = [str(turn.get("content") or "") for turn in _eligible(turns, exclude_turn_id)]
    context.append(str(new_message or ""))
    return context


def build_role_context(
    turns: Iterable[dict[str, Any]],
    new_message: str,
    exclude_turn_id: int | None = None,
) -> list[dict[str, str]]:
    context = [
        {"role": str(turn.get("role") or "user"), "text": str(turn.get("content") or "")}
        for turn in _eligible(turns, exclude_turn_id)
    ]
    context.append({"role": "user", "text": str(new_message or "")})
    return context
