"""
Accounting and spreadsheet export tests.
"""

import csv
import io

import pytest

from app.core.errors import WorkflowValidationError
from app.gateways.base import ExportType
from app.models.quote import QuoteStatus

from tests.fakes import make_quote


async def create(engine, repo, status: QuoteStatus, number: str):
    quote = make_quote(quote_number=number)
    await repo.save(quote)
    if status != QuoteStatus.DRAFT:
        await engine.send_quote(quote.id)
    if status in (QuoteStatus.APPROVED, QuoteStatus.SCHEDULED, QuoteStatus.CONVERTED):
        await engine.approve_quote(quote.id)
    if status == QuoteStatus.CONVERTED:
        await engine.convert_to_job(quote.id)
    return quote


async def test_batch_with_draft_is_rejected(engine, quote_repo, gateways):
    draft = await create(engine, quote_repo, QuoteStatus.DRAFT, "Q-2026-00001")
    approved = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00002")

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([draft.id, approved.id], ExportType.INVOICE)

    assert exc.value.field == "quote_ids[0]"
    assert f"Quote {draft.id}" in exc.value.message
    assert gateways.accounting.calls == 0
    assert approved.accounting_export_id is None


async def test_batch_with_unknown_quote_is_rejected(engine, quote_repo, gateways):
    approved = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([approved.id, 999], ExportType.ESTIMATE)

    assert exc.value.field == "quote_ids[1]"
    assert "999" in exc.value.message
    assert gateways.accounting.calls == 0


async def test_export_eligible_quotes(engine, quote_repo, gateways, clock):
    approved = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")
    converted = await create(engine, quote_repo, QuoteStatus.CONVERTED, "Q-2026-00002")

    results = await engine.export_to_accounting([converted.id, approved.id], ExportType.SALES_RECEIPT)

    assert [r.quote_id for r in results] == [converted.id, approved.id]
    assert all(r.success for r in results)
    assert results[0].export_id == f"qb_{converted.id}"
    assert approved.accounting_export_id == f"qb_{approved.id}"
    assert approved.accounting_exported_at == clock.now
    assert gateways.accounting.exported == [
        (converted.id, ExportType.SALES_RECEIPT),
        (approved.id, ExportType.SALES_RECEIPT),
    ]
    assert approved.events[-1].event == "exported"


async def test_partial_failure_is_reported_per_item(engine, quote_repo, gateways):
    first = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")
    second = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00002")
    gateways.accounting.failing_ids = {first.id}

    results = await engine.export_to_accounting([first.id, second.id], "invoice")

    assert not results[0].success
    assert "ledger refused" in results[0].error
    assert results[1].success
    assert first.accounting_export_id is None
    assert second.accounting_export_id == f"qb_{second.id}"


async def test_expired_quote_is_not_exportable(engine, quote_repo, clock):
    sent = await create(engine, quote_repo, QuoteStatus.SENT, "Q-2026-00001")
    clock.advance(days=31)

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([sent.id], ExportType.INVOICE)

    assert "expired" in exc.value.message


async def test_empty_batch(engine):
    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([], ExportType.INVOICE)

    assert exc.value.field == "quote_ids"


async def test_duplicate_ids(engine, quote_repo):
    approved = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([approved.id, approved.id], ExportType.INVOICE)

    assert exc.value.field == "quote_ids[1]"


async def test_unknown_export_type(engine, quote_repo):
    approved = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_accounting([approved.id], "credit_memo")

    assert exc.value.field == "export_type"


async def test_quote_removed_mid_batch_is_reported(engine, quote_repo, gateways):
    first = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00001")
    second = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00002")
    third = await create(engine, quote_repo, QuoteStatus.APPROVED, "Q-2026-00003")

    def remove_second(quote):
        if quote.id == first.id:
            quote_repo.quotes.pop(second.id)

    gateways.accounting.on_export = remove_second

    results = await engine.export_to_accounting([first.id, second.id, third.id], ExportType.INVOICE)

    assert [r.success for r in results] == [True, False, True]
    assert "not found" in results[1].error
    assert third.accounting_export_id == f"qb_{third.id}"


# =============================================================================
# SPREADSHEET
# =============================================================================

async def test_spreadsheet_export_rows_follow_input_order(engine, quote_repo, clock):
    draft = await create(engine, quote_repo, QuoteStatus.DRAFT, "Q-2026-00001")
    converted = await create(engine, quote_repo, QuoteStatus.CONVERTED, "Q-2026-00002")

    export = await engine.export_to_spreadsheet([converted.id, draft.id])

    rows = list(csv.reader(io.StringIO(export.content)))
    assert rows[0][:3] == ["Quote Number", "Title", "Customer"]
    assert [row[0] for row in rows[1:]] == ["Q-2026-00002", "Q-2026-00001"]
    assert rows[1][5] == "converted"
    assert rows[1][9] == "137.50"
    assert rows[2][5] == "draft"
    assert export.exported_count == 2
    assert export.filename == "quotes_export_20260302_090000.csv"
    assert export.content_type == "text/csv"


async def test_spreadsheet_export_shows_expired_status(engine, quote_repo, clock):
    sent = await create(engine, quote_repo, QuoteStatus.SENT, "Q-2026-00001")
    clock.advance(days=31)

    export = await engine.export_to_spreadsheet([sent.id])

    rows = list(csv.reader(io.StringIO(export.content)))
    assert rows[1][5] == "expired"


async def test_spreadsheet_batch_with_unknown_quote_is_rejected(engine, quote_repo):
    draft = await create(engine, quote_repo, QuoteStatus.DRAFT, "Q-2026-00001")

    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_spreadsheet([draft.id, 404])

    assert exc.value.field == "quote_ids[1]"


async def test_spreadsheet_export_leaves_quotes_untouched(engine, quote_repo):
    draft = await create(engine, quote_repo, QuoteStatus.DRAFT, "Q-2026-00001")
    saves = quote_repo.saves

    await engine.export_to_spreadsheet([draft.id])

    assert quote_repo.saves == saves
    assert draft.events == []


async def test_spreadsheet_empty_batch(engine):
    with pytest.raises(WorkflowValidationError) as exc:
        await engine.export_to_spreadsheet([])

    assert exc.value.field == "quote_ids"
