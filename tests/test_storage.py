"""Tests for TranscriptStore."""

import pytest

from boardroom.personas import PersonaType
from boardroom.states import Message
from boardroom.storage import TranscriptStore


class TestTranscriptStore:
    def test_append_and_load(self, tmp_path):
        store = TranscriptStore(tmp_path / "conversations")
        cid = store.new_conversation_id()
        first = Message(content="Gut says go", persona=PersonaType.FAST_THINKER)
        second = Message(content="Checked: 12% growth", persona=PersonaType.MODERATOR, fact_checked=True)

        store.append(cid, first)
        store.append(cid, second)

        loaded = store.load(cid)
        assert loaded == [first, second]
        assert loaded[1].fact_checked is True

    def test_load_unknown_conversation(self, tmp_path):
        assert TranscriptStore(tmp_path).load("missing") == []

    def test_conversations_are_separate(self, tmp_path):
        store = TranscriptStore(tmp_path)
        store.append("a", Message.from_user("for a"))
        store.append("b", Message.from_user("for b"))
        assert [m.content for m in store.load("a")] == ["for a"]

    def test_corrupt_lines_are_skipped(self, tmp_path):
        store = TranscriptStore(tmp_path)
        message = Message.from_user("keep me")
        store.append("c1", message)
        with store.path_for("c1").open("a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write('{"id": "x", "persona": "nobody", "timestamp": "2024-01-01T00:00:00"}\n')
        assert store.load("c1") == [message]

    @pytest.mark.parametrize("bad", ["", "..", "a/b", "a\\b"])
    def test_rejects_path_like_ids(self, tmp_path, bad):
        with pytest.raises(ValueError):
            TranscriptStore(tmp_path).path_for(bad)

    def test_observer_persists_then_forwards(self, tmp_path):
        store = TranscriptStore(tmp_path)
        forwarded = []
        observer = store.observer("c2", forward=forwarded.append)
        message = Message(content="What if it fails?", persona=PersonaType.DEVILS_ADVOCATE)

        observer(message)

        assert forwarded == [message]
        assert store.load("c2") == [message]

    def test_observer_survives_write_errors(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        store = TranscriptStore(blocker)
        forwarded = []

        store.observer("c3", forward=forwarded.append)(Message.from_user("still shown"))

        assert len(forwarded) == 1
