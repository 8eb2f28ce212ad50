from datetime import datetime, timedelta, timezone

import pytest

from fitpantry.errors import NotFoundError, ValidationError
from fitpantry.models import Conversation, ConversationMessage
from fitpantry.services import conversation_service as cs


@pytest.mark.parametrize("message, title", [
    ("What should I eat?", "What should I eat?"),
    ("Give me a high protein breakfast idea please", "Give me a high"),
    ("Supercalifragilisticexpialidocious antidisestablishmentarianism", "Supercalifragilisticexpialidoc..."),
    ("   ", "New Conversation"),
])
def test_derive_title(message, title):
    assert cs.derive_title(message) == title


def test_relative_time_labels():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert cs.relative_time(now - timedelta(seconds=30), now) == "Just now"
    assert cs.relative_time(now - timedelta(minutes=5), now) == "5 min ago"
    assert cs.relative_time(now - timedelta(hours=1), now) == "1 hour ago"
    assert cs.relative_time(now - timedelta(hours=3), now) == "3 hours ago"
    assert cs.relative_time(now - timedelta(days=1), now) == "1 day ago"
    assert cs.relative_time(now - timedelta(days=4), now) == "4 days ago"
    # Naive timestamps are read as UTC.
    assert cs.relative_time(datetime(2024, 5, 1, 11, 50), now) == "10 min ago"


def test_append_updates_denormalized_fields(db_session, user):
    conv = cs.create_conversation(db_session, user.id, "Hi", "hello")
    before = conv.updated_at

    msg = cs.append_message(db_session, user.id, conv.id, "user", "hello")
    db_session.refresh(conv)
    assert conv.last_message == "hello"
    assert conv.updated_at >= before
    assert msg.source == "user"

    reply = cs.append_message(db_session, user.id, conv.id, "assistant", "hi there", source="mock")
    db_session.refresh(conv)
    assert conv.last_message == "hi there"
    assert reply.created_at > msg.created_at


def test_message_timestamps_strictly_increase(db_session, user):
    conv = cs.create_conversation(db_session, user.id, "Burst", "m0")
    for i in range(20):
        cs.append_message(db_session, user.id, conv.id, "user", f"m{i}")
    stamps = [m.created_at for m in cs.list_messages(db_session, user.id, conv.id)]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == len(stamps)
    assert [m.content for m in cs.list_messages(db_session, user.id, conv.id)] == [
        f"m{i}" for i in range(20)
    ]


def test_append_rejects_bad_role_and_foreign_conversation(db_session, user, other_user):
    conv = cs.create_conversation(db_session, user.id, "Mine", "x")
    with pytest.raises(ValidationError):
        cs.append_message(db_session, user.id, conv.id, "system", "nope")
    with pytest.raises(NotFoundError):
        cs.append_message(db_session, other_user.id, conv.id, "user", "intrusion")
    assert cs.list_messages(db_session, user.id, conv.id) == []


def test_recent_messages_window(db_session, user):
    conv = cs.create_conversation(db_session, user.id, "Long", "m0")
    for i in range(15):
        cs.append_message(db_session, user.id, conv.id, "user", f"m{i}")
    recent = cs.recent_messages(db_session, user.id, conv.id, 10)
    assert [m.content for m in recent] == [f"m{i}" for i in range(5, 15)]


def test_list_conversations_most_recent_first(db_session, user, other_user):
    older = cs.create_conversation(db_session, user.id, "Older", "a")
    newer = cs.create_conversation(db_session, user.id, "Newer", "b")
    cs.create_conversation(db_session, other_user.id, "Theirs", "c")
    older.updated_at = newer.updated_at - timedelta(hours=2)
    db_session.commit()

    summaries = cs.list_conversations(db_session, user.id)
    assert [s.id for s in summaries] == [newer.id, older.id]
    assert summaries[1].time == "2 hours ago"

    cs.append_message(db_session, user.id, older.id, "user", "bump")
    assert [s.id for s in cs.list_conversations(db_session, user.id)][0] == older.id


def test_get_conversation_is_owner_scoped(db_session, user, other_user):
    conv = cs.create_conversation(db_session, user.id, "Mine", "x")
    assert cs.get_conversation(db_session, user.id, conv.id).id == conv.id
    assert cs.get_conversation(db_session, other_user.id, conv.id) is None
    assert cs.list_messages(db_session, other_user.id, conv.id) == []


def test_delete_removes_messages(db_session, user):
    conv = cs.create_conversation(db_session, user.id, "Doomed", "x")
    cs.append_message(db_session, user.id, conv.id, "user", "one")
    cs.append_message(db_session, user.id, conv.id, "assistant", "two")
    conv_id = conv.id

    cs.delete_conversation(db_session, user.id, conv_id)
    db_session.expire_all()
    assert db_session.get(Conversation, conv_id) is None
    assert db_session.query(ConversationMessage).filter_by(conversation_id=conv_id).count() == 0
    assert cs.list_messages(db_session, user.id, conv_id) == []

    with pytest.raises(NotFoundError):
        cs.delete_conversation(db_session, user.id, conv_id)


def test_delete_foreign_conversation_not_found(db_session, user, other_user):
    conv = cs.create_conversation(db_session, user.id, "Mine", "x")
    with pytest.raises(NotFoundError):
        cs.delete_conversation(db_session, other_user.id, conv.id)
    assert cs.get_conversation(db_session, user.id, conv.id) is not None


def test_start_conversation_writes_conversation_and_first_message(db_session, user):
    conv, first = cs.start_conversation(db_session, user.id, "What should I eat?", "fixed-id-1")
    assert conv.id == "fixed-id-1"
    assert conv.title == "What should I eat?"
    assert conv.last_message == "What should I eat?"
    assert first.conversation_id == conv.id
    assert first.role == "user"
    assert [m.id for m in cs.list_messages(db_session, user.id, conv.id)] == [first.id]

