"""Tests for plan draft persistence."""

from planner.db.draft_store import draft_store


class TestDraftStore:
    """Tests for saving, loading and deleting drafts."""

    async def test_save_and_load(self):
        await draft_store.save_draft("s1", "modification", "pi-1", {"plan": {"operations": []}})
        draft = await draft_store.load_draft("s1")
        assert draft.session_id == "s1"
        assert draft.kind == "modification"
        assert draft.subject_id == "pi-1"
        assert draft.state == {"plan": {"operations": []}}

    async def test_save_replaces_state(self):
        await draft_store.save_draft("s1", "migration", "a->b", {"v": 1})
        first = await draft_store.load_draft("s1")
        await draft_store.save_draft("s1", "migration", "a->b", {"v": 2})
        second = await draft_store.load_draft("s1")
        assert second.state == {"v": 2}
        assert second.created_at == first.created_at

    async def test_load_missing(self):
        assert await draft_store.load_draft("nope") is None

    async def test_list_for_subject(self):
        await draft_store.save_draft("s1", "modification", "pi-1", {})
        await draft_store.save_draft("s2", "modification", "pi-1", {})
        await draft_store.save_draft("s3", "modification", "pi-2", {})
        drafts = await draft_store.list_drafts("modification", "pi-1")
        assert {d.session_id for d in drafts} == {"s1", "s2"}

    async def test_delete(self):
        await draft_store.save_draft("s1", "modification", "pi-1", {})
        assert await draft_store.delete_draft("s1") is True
        assert await draft_store.delete_draft("s1") is False
        assert await draft_store.load_draft("s1") is None
