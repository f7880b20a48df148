"""
SQL quote repository tests.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects import postgresql

from app.models.quote import QuoteStatus
from app.repositories.quote import SQLQuoteRepository, select_quote_for_update

from tests.fakes import make_customer, make_quote


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def stored_quotes(db_session, owner_id: int):
    repo = SQLQuoteRepository(db_session)
    customer = make_customer(id=None, owner_id=owner_id)
    draft = await repo.save(make_quote(owner_id=owner_id, customer=customer))
    sent = await repo.save(make_quote(
        status=QuoteStatus.SENT,
        owner_id=owner_id,
        customer=customer,
        quote_number="Q-2026-00002",
        sent_at=NOW - timedelta(days=1),
        expires_at=NOW + timedelta(days=29),
    ))
    expired = await repo.save(make_quote(
        status=QuoteStatus.SENT,
        owner_id=owner_id,
        customer=customer,
        quote_number="Q-2026-00003",
        sent_at=NOW - timedelta(days=40),
        expires_at=NOW - timedelta(days=10),
    ))
    return repo, draft, sent, expired


async def test_search_filters_on_effective_status(db_session, test_user):
    repo, draft, sent, expired = await stored_quotes(db_session, test_user.id)

    quotes, total = await repo.search(test_user.id, status=QuoteStatus.SENT, now=NOW)
    assert total == 1
    assert [q.id for q in quotes] == [sent.id]

    quotes, total = await repo.search(test_user.id, status=QuoteStatus.EXPIRED, now=NOW)
    assert [q.id for q in quotes] == [expired.id]

    quotes, total = await repo.search(test_user.id, now=NOW)
    assert total == 3


async def test_search_pages_results(db_session, test_user):
    repo, *_ = await stored_quotes(db_session, test_user.id)

    quotes, total = await repo.search(test_user.id, skip=2, limit=2, now=NOW)

    assert total == 3
    assert len(quotes) == 1


async def test_list_is_scoped_to_owner(db_session, test_user):
    repo, *_ = await stored_quotes(db_session, test_user.id)

    assert len(await repo.list(owner_id=test_user.id)) == 3
    assert await repo.list(owner_id=test_user.id + 1) == []


async def test_get_for_update_loads_quote(db_session, test_user):
    repo, draft, *_ = await stored_quotes(db_session, test_user.id)

    quote = await repo.get_for_update(draft.id)

    assert quote.id == draft.id
    assert sorted(item.name for item in quote.items) == ["Hedge trimming", "Lawn mowing"]
    assert await repo.get_for_update(999) is None


def test_select_for_update_locks_quote_row():
    sql = str(select_quote_for_update(7).compile(dialect=postgresql.dialect()))

    assert "FOR UPDATE OF quotes" in sql
