from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from fitpantry.services import pantry_service, profile_service
from fitpantry.services.context_builder import (
    INSTRUCTIONS,
    NO_ITEMS_MARKER,
    PANTRY_HEADER,
    PROFILE_HEADER,
    ROLE_AND_DISCLAIMER,
    ContextSnapshot,
    PantryEntry,
    assemble,
    load_snapshot,
    render_system_prompt,
)


def test_empty_snapshot_renders_marker_and_no_profile():
    text = render_system_prompt(ContextSnapshot())
    assert text.startswith(ROLE_AND_DISCLAIMER)
    assert NO_ITEMS_MARKER in text
    assert PROFILE_HEADER not in text
    assert PANTRY_HEADER not in text
    assert text.endswith(INSTRUCTIONS)


def test_render_is_deterministic_regardless_of_item_order():
    items = (
        PantryEntry("Spinach", "Vegetable"),
        PantryEntry("Chicken", "Protein", "skinless"),
        PantryEntry("Eggs", "Protein"),
    )
    snap_a = ContextSnapshot("Build muscle", "Advanced", ("High protein",), items)
    snap_b = ContextSnapshot("Build muscle", "Advanced", ("High protein",), tuple(reversed(items)))

    first = render_system_prompt(snap_a)
    assert render_system_prompt(snap_a) == first
    assert render_system_prompt(snap_b) == first


def test_render_groups_by_category():
    snap = ContextSnapshot(items=(
        PantryEntry("Spinach", "Vegetable"),
        PantryEntry("Eggs", "Protein"),
        PantryEntry("Chicken", "Protein", "skinless"),
    ))
    text = render_system_prompt(snap)
    expected = "\n\n".join([
        PANTRY_HEADER,
        "Protein:\n- Chicken (skinless)\n- Eggs",
        "Vegetable:\n- Spinach",
    ])
    assert expected in text
    assert NO_ITEMS_MARKER not in text


def test_profile_section_only_lists_present_fields():
    text = render_system_prompt(ContextSnapshot(health_goal="Lose weight"))
    assert f"{PROFILE_HEADER}\n- Health Goal: Lose weight" in text
    assert "Fitness Level" not in text
    assert "Dietary Preferences" not in text


def test_assemble_reads_owner_data(db_session, user, other_user):
    profile_service.upsert_profile(db_session, user.id, {
        "health_goal": "Build muscle",
        "fitness_level": "Beginner",
        "dietary_preferences": ["Vegetarian", "Low sugar"],
    })
    pantry_service.create_item(db_session, user.id, "Lentils", "Protein")
    pantry_service.create_item(db_session, other_user.id, "Steak", "Protein")

    text = assemble(db_session, user.id)
    assert "- Health Goal: Build muscle" in text
    assert "- Fitness Level: Beginner" in text
    assert "- Dietary Preferences: Vegetarian, Low sugar" in text
    assert "- Lentils" in text
    assert "Steak" not in text


def test_fresh_user_gets_empty_context(db_session, user):
    text = assemble(db_session, user.id)
    assert text == render_system_prompt(ContextSnapshot())


def test_store_failure_degrades_to_empty_snapshot():
    db = MagicMock()
    db.get.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    assert load_snapshot(db, "user-1") == ContextSnapshot()
    db.rollback.assert_called_once()
