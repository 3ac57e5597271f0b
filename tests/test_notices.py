from __future__ import annotations

from app.core.notices import compose_notices, normalize_notices


def test_order_is_inline_static_dynamic():
    notices = compose_notices(
        inline=["caller note"],
        static="model note",
        dynamic=["fallback note"],
    )

    assert notices == ["caller note", "model note", "fallback note"]


def test_blank_entries_dropped_and_duplicates_collapsed():
    notices = compose_notices(
        inline=["same", "  ", ""],
        static="same",
        dynamic=["other", "same", "other"],
    )

    assert notices == ["same", "other"]


def test_normalize_accepts_scalars_and_sequences():
    assert normalize_notices(None) == []
    assert normalize_notices("  one ") == ["one"]
    assert normalize_notices(("a", " ", "b")) == ["a", "b"]
    assert normalize_notices(7) == ["7"]
