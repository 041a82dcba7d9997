"""Service-level tests for formation CRUD, caching and popularity."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from formation_hub import cache_backend, config, formations
from formation_hub.database import Formation, Vote
from formation_hub.domain.errors import (
    ForbiddenError, FormationNotFoundError, UnauthorizedError,
)
from formation_hub.domain.models import FormationCreate
from formation_hub.users import upsert_user


@pytest.fixture
def payload(sample_payload) -> FormationCreate:
    return FormationCreate(**sample_payload)


class TestCreateFormation:
    def test_persists_expected_fields(self, db_session, payload):
        new_id = formations.create_formation(db_session, "1001", payload)

        row = db_session.get(Formation, new_id)
        assert row.user_id == "1001"
        assert row.formation == "1,3,5,7,9"
        assert row.artifact == "starter-2"
        assert row.layout == 1
        assert row.name == "Arena wall"
        assert row.tags == "arena,tank"
        assert row.formation_share_id == "share-123"

    def test_requires_user(self, db_session, payload):
        with pytest.raises(UnauthorizedError):
            formations.create_formation(db_session, None, payload)
        assert db_session.query(Formation).count() == 0


class TestGetFormation:
    def test_merges_owner_and_votes(self, db_session, make_formation):
        upsert_user(db_session, "1001", "Odie", "https://cdn.example/odie.png")
        row = make_formation(tags="boss,dream realm")
        db_session.add(Vote(formation_id=row.id, user_id="2002"))
        db_session.commit()

        data = formations.get_formation(db_session, row.id)
        assert data.name == "Dream realm burst"
        assert data.formation == ["1", "3", "5"]
        assert data.tags == ["boss", "dream realm"]
        assert data.votes == 1
        assert data.username == "Odie"
        assert data.user_image == "https://cdn.example/odie.png"

    def test_missing_formation_returns_none(self, db_session):
        assert formations.get_formation(db_session, 999) is None

    def test_unknown_owner_degrades_to_placeholder(self, db_session, make_formation):
        row = make_formation(user_id="ghost")
        data = formations.get_formation(db_session, row.id)
        assert data.username == "Unknown"
        assert data.user_image == ""

    def test_reads_are_cached_until_revalidated(self, db_session, make_formation, payload):
        row = make_formation(name="Before")
        assert formations.get_formation(db_session, row.id).name == "Before"

        # Direct writes bypass revalidation, so the cached copy is served.
        row.name = "Sneaky"
        db_session.commit()
        assert formations.get_formation(db_session, row.id).name == "Before"

        formations.update_formation(db_session, "1001", row.id, payload)
        assert formations.get_formation(db_session, row.id).name == "Arena wall"


class TestUpdateAndDelete:
    def test_owner_can_update(self, db_session, make_formation, payload):
        row = make_formation()
        formations.update_formation(db_session, "1001", row.id, payload)
        db_session.expire_all()
        assert db_session.get(Formation, row.id).name == "Arena wall"

    def test_update_by_other_user_is_rejected(self, db_session, make_formation, payload):
        row = make_formation(user_id="1001")
        with pytest.raises(ForbiddenError):
            formations.update_formation(db_session, "2002", row.id, payload)
        db_session.expire_all()
        assert db_session.get(Formation, row.id).name == "Dream realm burst"

    def test_update_requires_user(self, db_session, make_formation, payload):
        row = make_formation()
        with pytest.raises(UnauthorizedError):
            formations.update_formation(db_session, None, row.id, payload)

    def test_update_missing_formation(self, db_session, payload):
        with pytest.raises(FormationNotFoundError):
            formations.update_formation(db_session, "1001", 404, payload)

    def test_delete_by_owner(self, db_session, make_formation):
        row = make_formation()
        row_id = row.id
        formations.get_formation(db_session, row_id)  # warm the cache

        formations.delete_formation(db_session, "1001", row_id)
        assert db_session.get(Formation, row_id) is None
        assert formations.get_formation(db_session, row_id) is None

    def test_delete_by_other_user_is_rejected(self, db_session, make_formation):
        row = make_formation(user_id="1001")
        with pytest.raises(ForbiddenError):
            formations.delete_formation(db_session, "2002", row.id)
        assert db_session.get(Formation, row.id) is not None


def test_formations_for_user_returns_only_theirs(db_session, make_formation):
    make_formation(name="Mine A", user_id="1001")
    make_formation(name="Theirs", user_id="2002")
    make_formation(name="Mine B", user_id="1001")

    names = [f.name for f in formations.get_formations_for_user_id(db_session, "1001")]
    assert names == ["Mine B", "Mine A"]


class TestMostPopular:
    def _vote(self, db_session, formation, *voters):
        db_session.add_all(Vote(formation_id=formation.id, user_id=v) for v in voters)
        db_session.commit()

    def test_orders_by_vote_count(self, db_session, make_formation):
        quiet = make_formation(name="Quiet")
        loved = make_formation(name="Loved")
        liked = make_formation(name="Liked")
        self._vote(db_session, loved, "a", "b", "c")
        self._vote(db_session, liked, "a")

        result = formations.most_popular_formations(db_session, 10)
        assert [f.name for f in result] == ["Loved", "Liked", "Quiet"]
        assert [f.votes for f in result] == [3, 1, 0]

    def test_respects_limit(self, db_session, make_formation):
        for i in range(5):
            make_formation(name=f"F{i}")
        assert len(formations.most_popular_formations(db_session, 2)) == 2

    def test_vote_revalidates_ranking(self, db_session, make_formation):
        first = make_formation(name="First")
        second = make_formation(name="Second")
        assert formations.most_popular_formations(db_session, 1)[0].name == "First"

        formations.vote_formation(db_session, "2002", second.id)
        assert formations.most_popular_formations(db_session, 1)[0].name == "Second"
        assert first.id != second.id


def test_revalidated_entries_do_not_accumulate(db_session, make_formation, payload, monkeypatch):
    now = [1_000.0]
    monkeypatch.setattr(cache_backend, "time", SimpleNamespace(time=lambda: now[0]))
    monkeypatch.setattr(config, "FORMATION_CACHE_TTL_SECONDS", 60)
    row = make_formation()

    for _ in range(50):
        formations.get_formation(db_session, row.id)
        formations.update_formation(db_session, "1001", row.id, payload)
        now[0] += 61

    assert len(cache_backend.get_cache_backend()) < 10
