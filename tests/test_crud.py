# tests/test_crud.py
from datetime import timedelta
from sqlalchemy import text
from swapit_feed import crud
from swapit_feed.schemas import FeedFilters, ListingSummary
from factories import BASE_TIME, SYNC_TIME, make_snapshot


def summary_of(snapshot, synced_at=SYNC_TIME):
    return ListingSummary.from_snapshot(snapshot, synced_at=synced_at)


def test_upsert_and_get(db):
    snap = make_snapshot(title="Desk Lamp", tags=["furniture", "lighting", "furniture"], price=15.5)
    crud.upsert_summary(db, summary_of(snap))
    obj = crud.get_summary(db, snap.id)
    assert obj is not None
    assert obj.title == "Desk Lamp"
    assert obj.tags == ["furniture", "lighting"]
    assert obj.price.amount == 15.5
    assert obj.created_at == snap.created_at
    assert obj.last_updated_at == SYNC_TIME
    assert crud.summary_exists(db, snap.id)


def test_upsert_overwrites_in_place_and_keeps_created_at(db):
    snap = make_snapshot(tags=["books"])
    crud.upsert_summary(db, summary_of(snap))
    changed = snap.model_copy(update={
        "title": "Renamed",
        "tags": ["textbooks"],
        "created_at": snap.created_at + timedelta(days=1),
    })
    later = SYNC_TIME + timedelta(hours=1)
    crud.upsert_summary(db, summary_of(changed, synced_at=later))

    assert crud.count_summaries(db) == 1
    obj = crud.get_summary(db, snap.id)
    assert obj.title == "Renamed"
    assert obj.tags == ["textbooks"]
    assert obj.created_at == snap.created_at
    assert obj.last_updated_at == later
    assert crud.query_summaries(db, FeedFilters(tags=["books"]))["total"] == 0


def test_remove_is_idempotent(db):
    snap = make_snapshot()
    crud.upsert_summary(db, summary_of(snap))
    assert crud.remove_summary(db, snap.id) is True
    assert crud.remove_summary(db, snap.id) is False
    assert not crud.summary_exists(db, snap.id)
    assert crud.get_summary(db, snap.id) is None


def test_query_orders_newest_first_with_id_tie_break(db):
    same_time = BASE_TIME + timedelta(hours=5)
    a = make_snapshot(id="a", created_at=same_time)
    b = make_snapshot(id="b", created_at=same_time)
    old = make_snapshot(id="z", created_at=BASE_TIME)
    for snap in (old, a, b):
        crud.upsert_summary(db, summary_of(snap))

    res = crud.query_summaries(db, FeedFilters(), skip=0, limit=10)
    assert [s.id for s in res["items"]] == ["b", "a", "z"]
    assert res["total"] == 3


def test_query_predicates_are_conjunctive(db):
    cheap_tech = make_snapshot(tags=["electronics"], price=30)
    pricey_tech = make_snapshot(tags=["electronics", "audio"], price=150)
    cheap_books = make_snapshot(tags=["books"], price=25)
    for snap in (cheap_tech, pricey_tech, cheap_books):
        crud.upsert_summary(db, summary_of(snap))

    res = crud.query_summaries(db, FeedFilters(tags=["electronics"], min_price=20, max_price=100))
    assert [s.id for s in res["items"]] == [cheap_tech.id]

    res = crud.query_summaries(db, FeedFilters(tags=["audio", "books"]))
    assert [s.id for s in res["items"]] == [cheap_books.id, pricey_tech.id]

    res = crud.query_summaries(db, FeedFilters(max_price=30))
    assert {s.id for s in res["items"]} == {cheap_tech.id, cheap_books.id}


def test_total_is_independent_of_page_window(db):
    for _ in range(7):
        crud.upsert_summary(db, summary_of(make_snapshot()))
    res = crud.query_summaries(db, FeedFilters(), skip=5, limit=5)
    assert res["total"] == 7
    assert len(res["items"]) == 2


def test_merge_fallback_keeps_first_created_at(db, monkeypatch):
    monkeypatch.setattr(crud, "_NATIVE_UPSERT", {})
    snap = make_snapshot(tags=["books"])
    crud.upsert_summary(db, summary_of(snap))
    moved = snap.model_copy(update={"title": "Moved", "created_at": snap.created_at + timedelta(days=2)})
    crud.upsert_summary(db, summary_of(moved))

    db.expire_all()
    obj = crud.get_summary(db, snap.id)
    assert obj.title == "Moved"
    assert obj.created_at == snap.created_at
    assert crud.count_summaries(db) == 1


def test_tag_query_deduplicates_listings_matching_several_tags(db):
    both = make_snapshot(tags=["books", "textbooks"])
    one = make_snapshot(tags=["textbooks"])
    for snap in (both, one):
        crud.upsert_summary(db, summary_of(snap))

    res = crud.query_summaries(db, FeedFilters(tags=["books", "textbooks"]), skip=0, limit=10)
    assert [s.id for s in res["items"]] == [one.id, both.id]
    assert res["total"] == 2


def _plan(db, query):
    sql = str(query.statement.compile(dialect=db.get_bind().dialect, compile_kwargs={"literal_binds": True}))
    rows = db.execute(text("EXPLAIN QUERY PLAN " + sql)).all()
    return " | ".join(row[-1] for row in rows)


def test_tag_queries_use_compound_tag_indexes(db):
    for i in range(50):
        tags = ["electronics"] if i % 3 == 0 else ["books", "misc"]
        crud.upsert_summary(db, summary_of(make_snapshot(tags=tags, price=i * 5)))

    for filters in (
        FeedFilters(tags=["electronics"]),
        FeedFilters(tags=["electronics"], min_price=20, max_price=120),
        FeedFilters(tags=["books", "electronics"]),
    ):
        plan = _plan(db, crud.tagged_listings(db, filters))
        assert "idx_feed_tags_tag_" in plan, plan
        assert "SCAN feed_index" not in plan, plan
