"""Builds the system instruction that grounds the assistant.

``load_snapshot`` reads the profile and pantry (two independent reads) and
``render_system_prompt`` turns the snapshot into text. Rendering is pure:
the same snapshot always yields byte-identical output, with no clock or
randomness involved.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import PantryItem, UserProfile

logger = logging.getLogger("fitpantry.context")

DEFAULT_CATEGORY = "Other"

ROLE_AND_DISCLAIMER = """You are an AI personal trainer and nutritionist assistant. Your role is to provide personalized health, fitness, and nutrition advice based on the user's profile and available ingredients.

**IMPORTANT DISCLAIMERS:**
- You are an AI assistant providing general guidance only
- Your advice should not replace professional medical advice
- Users should consult healthcare professionals for serious health concerns
- Always recommend users speak with doctors before starting new exercise or diet programs"""

PROFILE_HEADER = "**USER PROFILE:**"
PANTRY_HEADER = "**AVAILABLE PANTRY ITEMS:**"
NO_ITEMS_MARKER = "**PANTRY ITEMS:** No items currently listed"

INSTRUCTIONS = """**INSTRUCTIONS:**
1. Provide personalized recommendations based on the user's profile and available ingredients
2. For recipe requests, prioritize using ingredients from their pantry
3. For workout requests, consider their health goals and fitness level
4. Be encouraging and motivational in your responses
5. Keep responses practical and actionable
6. If pantry items are limited, suggest simple additions they could make
7. Always consider dietary preferences when making recommendations
8. Include approximate nutritional information when relevant
9. Suggest modifications for different fitness levels when providing workout advice

Respond in a helpful, encouraging, and professional tone. Focus on practical advice they can implement immediately."""


@dataclass(frozen=True)
class PantryEntry:
    name: str
    category: str
    notes: Optional[str] = None


@dataclass(frozen=True)
class ContextSnapshot:
    health_goal: Optional[str] = None
    fitness_level: Optional[str] = None
    dietary_preferences: tuple[str, ...] = ()
    items: tuple[PantryEntry, ...] = field(default_factory=tuple)


def _profile_lines(snapshot: ContextSnapshot) -> list[str]:
    lines = []
    if snapshot.health_goal:
        lines.append(f"- Health Goal: {snapshot.health_goal}")
    if snapshot.fitness_level:
        lines.append(f"- Fitness Level: {snapshot.fitness_level}")
    if snapshot.dietary_preferences:
        lines.append(f"- Dietary Preferences: {', '.join(snapshot.dietary_preferences)}")
    return lines


def _pantry_block(items: tuple[PantryEntry, ...]) -> str:
    if not items:
        return NO_ITEMS_MARKER

    grouped: dict[str, list[PantryEntry]] = {}
    for item in items:
        grouped.setdefault(item.category or DEFAULT_CATEGORY, []).append(item)

    sections = [PANTRY_HEADER]
    for category in sorted(grouped):
        lines = [f"{category}:"]
        for item in sorted(grouped[category], key=lambda i: (i.name, i.notes or "")):
            line = f"- {item.name}"
            if item.notes:
                line += f" ({item.notes})"
            lines.append(line)
        sections.append("\n".join(lines))
    return "\n\n".join(sections)


def render_system_prompt(snapshot: ContextSnapshot) -> str:
    blocks = [ROLE_AND_DISCLAIMER]

    profile_lines = _profile_lines(snapshot)
    if profile_lines:
        blocks.append("\n".join([PROFILE_HEADER, *profile_lines]))

    blocks.append(_pantry_block(snapshot.items))
    blocks.append(INSTRUCTIONS)
    return "\n\n".join(blocks)


def load_snapshot(db: Session, owner_id: str) -> ContextSnapshot:
    """Read profile + pantry for the owner. Store failures degrade to an empty snapshot."""
    try:
        profile = db.get(UserProfile, owner_id)
        rows = db.execute(
            select(PantryItem.item_name, PantryItem.category, PantryItem.notes)
            .where(PantryItem.user_id == owner_id)
            .order_by(PantryItem.category.asc())
        ).all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load assistant context for user {owner_id}: {e}")
        db.rollback()
        return ContextSnapshot()

    items = tuple(PantryEntry(name=r[0], category=r[1], notes=r[2]) for r in rows)
    if profile is None:
        return ContextSnapshot(items=items)

    return ContextSnapshot(
        health_goal=profile.health_goal,
        fitness_level=profile.fitness_level,
        dietary_preferences=tuple(profile.dietary_preferences or ()),
        items=items,
    )


def assemble(db: Session, owner_id: str) -> str:
    return render_system_prompt(load_snapshot(db, owner_id))
