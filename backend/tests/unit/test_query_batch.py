"""Tests for QueryBatch"""

import json
from datetime import date

import httpx
import pytest

from stagechange.domain.errors import NotFoundError
from stagechange.repositories.api_client import StageChangeApiClient
from stagechange.services.query_batch import QueryBatch
from tests.conftest import PROJECT_ID


@pytest.fixture
def batch():
    return QueryBatch()


def test_add_update_remove(batch):
    query = batch.add(description="Missing invoice", money_in="120.00")
    assert query.id.startswith("QRY-")

    updated = batch.update(query.id, our_query="Please send the invoice", query_date="2026-03-01")
    assert updated.our_query == "Please send the invoice"
    assert updated.query_date == date(2026, 3, 1)
    assert updated.description == "Missing invoice"

    batch.remove(query.id)
    assert len(batch) == 0

    with pytest.raises(NotFoundError):
        batch.remove(query.id)


def test_update_rejects_unknown_fields(batch):
    query = batch.add(description="x")
    with pytest.raises(ValueError):
        batch.update(query.id, status="closed")


def test_bulk_import_accepts_camel_case_rows(batch):
    imported = batch.bulk_import([
        {"date": "2026-02-10", "description": "Bank charge", "moneyOut": "15.00"},
        {"ourQuery": "What is this receipt?"},
    ])
    assert len(imported) == 2
    assert imported[0].money_out == "15.00"
    assert imported[0].query_date == date(2026, 2, 10)
    assert imported[1].our_query == "What is this receipt?"


def test_meaningful_items_need_description_or_query(batch):
    batch.add(money_in="10.00")
    kept = batch.add(description="Explain transfer")
    assert batch.meaningful_items() == [kept]


def test_payload_shape(batch):
    query = batch.add(description="Bank charge", query_date="2026-02-10")
    assert query.to_payload(PROJECT_ID) == {
        "projectId": PROJECT_ID,
        "date": "2026-02-10",
        "description": "Bank charge",
        "moneyIn": None,
        "moneyOut": None,
        "ourQuery": "",
        "status": "open",
    }


@pytest.mark.asyncio
async def test_persist_continues_past_failures(batch, fake_api):
    first = batch.add(description="one")
    failing = batch.add(description="two")
    third = batch.add(description="three")
    batch.add(money_in="5.00")
    fake_api.fail_query_descriptions = {"two"}

    result = await batch.persist(fake_api, PROJECT_ID)

    assert result.created_ids == [first.id, third.id]
    assert result.failed_ids == [failing.id]
    assert result.attempted == 3
    assert [c[2]["description"] for c in fake_api.calls] == ["one", "two", "three"]


@pytest.mark.asyncio
async def test_persist_counts_html_success_page_as_failed_item(batch):
    def handler(request):
        if json.loads(request.content)["description"] == "two":
            return httpx.Response(200, text="<html>ok</html>", headers={"Content-Type": "text/html"})
        return httpx.Response(201, json={"id": "remote-1"})

    api_client = StageChangeApiClient(
        base_url="https://cases.test", api_token="token-123", transport=httpx.MockTransport(handler)
    )
    first = batch.add(description="one")
    failing = batch.add(description="two")

    result = await batch.persist(api_client, PROJECT_ID)

    assert result.created_ids == [first.id]
    assert result.failed_ids == [failing.id]
