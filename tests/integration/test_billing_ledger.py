"""Integration tests for the pending-item ledger through the HTTP API

Tests cover:
- A pending item is billed at most once, also under concurrent composes
- Voiding a gateway invoice returns its items to the queue, and a replayed
  void leaves re-billed items alone
- Deleting a draft and adding lines to it
- Replaying invoice.paid converges to one paid invoice
- send_invoice without a due date never reaches the gateway
- Usage imports are picked up by period composition
- The billing sweep invoices anchored projects
"""

import asyncio
import json
import pytest
from httpx import AsyncClient

from src.app.use_cases.billing.dtos import ComposeInvoiceCommandDTO
from src.depends import build_compose_invoice
from tests.fixtures.payment_gateway import USER_ID, WEBHOOK_SIGNATURE, find_invoice_line

API = "/api/billing"


async def _open_period(client: AsyncClient, project_id: str, start="2024-01-01", end="2024-01-31") -> str:
    response = await client.post(
        f"{API}/billing-periods",
        json={"project_id": project_id, "period_start": start, "period_end": end},
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _queue_item(client: AsyncClient, project_id: str, description: str, unit_price_cents: int, **extra) -> str:
    response = await client.post(
        f"{API}/pending-items",
        json={
            "project_id": project_id,
            "description": description,
            "unit_price_cents": unit_price_cents,
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["id"]


async def _send_event(client: AsyncClient, event_type: str, obj: dict):
    body = json.dumps({"id": f"evt_{event_type}", "type": event_type, "data": {"object": obj}})
    return await client.post(
        "/api/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": WEBHOOK_SIGNATURE, "Content-Type": "application/json"},
    )


@pytest.mark.asyncio
class TestDraftComposition:
    async def test_compose_prices_card_project_and_bills_items(self, client: AsyncClient, seeded, gateway):
        """
        Given: A card project with two pending items (10000 and 2 x 2500)
        When: A draft is composed for both items
        Then: The invoice carries a 465 cent processing fee and both items become billed
        """
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        first = await _queue_item(client, project_id, "Landing page", 10000)
        second = await _queue_item(client, project_id, "Support hours", 2500, quantity="2", source_type="task")

        response = await client.post(
            f"{API}/invoices/draft",
            json={"billing_period_id": period_id, "pending_item_ids": [first, second]},
        )

        assert response.status_code == 201, response.text
        invoice = response.json()
        assert invoice["status"] == "draft"
        assert invoice["subtotal_cents"] == 15000
        assert invoice["processing_fee_cents"] == 465
        assert invoice["total_cents"] == 15465
        assert invoice["invoice_number"].startswith("INV-")
        fee_line = find_invoice_line(invoice, "processing_fee")
        assert fee_line["amount_cents"] == 465

        assert len(gateway.drafts) == 1
        assert gateway.drafts[0].metadata["pending_item_ids"] == f"{first},{second}"
        assert [line["amount_cents"] for line in gateway.lines[invoice["gateway_invoice_id"]]] == [10000, 5000, 465]

        billed = await client.get(f"{API}/pending-items", params={"project_id": project_id, "status": "billed"})
        assert {item["id"] for item in billed.json()} == {first, second}
        assert all(item["billed_invoice_id"] == invoice["id"] for item in billed.json())
        assert all(item["billed_invoice_line_item_id"] for item in billed.json())

    async def test_pending_item_is_billed_at_most_once(self, client: AsyncClient, seeded, gateway):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        payload = {"billing_period_id": period_id, "pending_item_ids": [item_id]}

        first = await client.post(f"{API}/invoices/draft", json=payload)
        second = await client.post(f"{API}/invoices/draft", json=payload)

        assert first.status_code == 201
        assert second.status_code == 400
        assert second.json()["error"]["code"] == "VALIDATION_ERROR"
        assert len(gateway.drafts) == 1

    async def test_send_invoice_requires_due_date_before_gateway(self, client: AsyncClient, seeded, gateway):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)

        response = await client.post(
            f"{API}/invoices/draft",
            json={"billing_period_id": period_id, "pending_item_ids": [item_id], "collection_method": "send_invoice"},
        )

        assert response.status_code == 400
        assert "due_date" in response.json()["error"]["message"]
        assert gateway.drafts == []
        assert gateway.customers == {}

        pending = await client.get(f"{API}/pending-items", params={"project_id": project_id, "status": "pending"})
        assert [item["id"] for item in pending.json()] == [item_id]

    async def test_send_invoice_is_priced_offline(self, client: AsyncClient, seeded, gateway):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)

        response = await client.post(
            f"{API}/invoices/draft",
            json={
                "billing_period_id": period_id,
                "pending_item_ids": [item_id],
                "collection_method": "send_invoice",
                "due_date": "2024-02-15",
            },
        )

        assert response.status_code == 201, response.text
        invoice = response.json()
        assert invoice["processing_fee_cents"] == 0
        assert invoice["payment_method_type"] == "offline"
        assert invoice["due_date"] == "2024-02-15"
        assert gateway.drafts[0].due_date.isoformat() == "2024-02-15"

    async def test_usage_import_composed_from_period(self, client: AsyncClient, seeded):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)

        imported = await client.post(
            f"{API}/billing-periods/{period_id}/usage-imports",
            json={
                "rows": [
                    {"date": "2024-01-03", "total_cost": "12.00", "total_tokens": 1200},
                    {"date": "2024-01-04", "quantity": 800, "unit_price": "0.01"},
                    {"date": "garbage", "total_cost": "1.00"},
                ]
            },
        )
        assert imported.status_code == 201, imported.text
        assert imported.json()["total_cents"] == 2000
        assert imported.json()["rows_skipped"] == 1

        response = await client.post(
            f"{API}/invoices/draft",
            json={"billing_period_id": period_id, "include_retainer": True},
        )

        assert response.status_code == 201, response.text
        invoice = response.json()
        assert find_invoice_line(invoice, "base_subscription")["amount_cents"] == 150000
        assert find_invoice_line(invoice, "usage")["amount_cents"] == 2000
        assert invoice["subtotal_cents"] == 152000


@pytest.mark.asyncio
class TestGatewayReconciliation:
    async def test_void_returns_items_to_queue(self, client: AsyncClient, seeded, gateway):
        """
        Given: A draft invoice billing two pending items
        When: The gateway reports the invoice voided
        Then: Both items are pending again and can be billed on a new invoice
        """
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        first = await _queue_item(client, project_id, "Landing page", 10000)
        second = await _queue_item(client, project_id, "Support hours", 2500, quantity="2", source_type="task")
        draft = await client.post(
            f"{API}/invoices/draft",
            json={"billing_period_id": period_id, "pending_item_ids": [first, second]},
        )
        invoice = draft.json()

        ack = await _send_event(client, "invoice.voided", {"id": invoice["gateway_invoice_id"]})

        assert ack.status_code == 200
        assert ack.json()["action"] == "invoice_voided"
        voided = await client.get(f"{API}/invoices/{invoice['id']}")
        assert voided.json()["status"] == "void"

        pending = await client.get(f"{API}/pending-items", params={"project_id": project_id, "status": "pending"})
        assert {item["id"] for item in pending.json()} == {first, second}
        assert all(item["billed_invoice_id"] is None for item in pending.json())
        assert all(item["billed_invoice_line_item_id"] is None for item in pending.json())

        again = await client.post(
            f"{API}/invoices/draft",
            json={"billing_period_id": period_id, "pending_item_ids": [first, second]},
        )
        assert again.status_code == 201

    async def test_void_replay_keeps_rebilled_item(self, client: AsyncClient, seeded, gateway):
        """
        Given: An item voided off invoice A and then billed on invoice B
        When: A's invoice.voided event is delivered again
        Then: The item stays billed on B
        """
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        payload = {"billing_period_id": period_id, "pending_item_ids": [item_id]}

        first = (await client.post(f"{API}/invoices/draft", json=payload)).json()
        voided_event = {"id": first["gateway_invoice_id"]}
        await _send_event(client, "invoice.voided", voided_event)
        second = (await client.post(f"{API}/invoices/draft", json=payload)).json()

        replay = await _send_event(client, "invoice.voided", voided_event)

        assert replay.json()["ok"] is True
        items = f"{API}/pending-items"
        billed = (await client.get(items, params={"project_id": project_id, "status": "billed"})).json()
        assert [(item["id"], item["billed_invoice_id"]) for item in billed] == [(item_id, second["id"])]
        pending = (await client.get(items, params={"project_id": project_id, "status": "pending"})).json()
        assert pending == []
        assert (await client.get(f"{API}/invoices/{second['id']}")).json()["status"] == "draft"

    async def test_paid_replay_converges(self, client: AsyncClient, seeded):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        invoice = (
            await client.post(
                f"{API}/invoices/draft",
                json={"billing_period_id": period_id, "pending_item_ids": [item_id]},
            )
        ).json()
        event = {
            "id": invoice["gateway_invoice_id"],
            "amount_paid": 10320,
            "subtotal": 10320,
            "charge": "ch_1",
            "status_transitions": {"paid_at": 1706745600},
        }

        first = await _send_event(client, "invoice.paid", event)
        after_first = (await client.get(f"{API}/invoices/{invoice['id']}")).json()
        second = await _send_event(client, "invoice.paid", event)
        after_second = (await client.get(f"{API}/invoices/{invoice['id']}")).json()

        assert first.json()["ok"] is True
        assert second.json()["ok"] is True
        assert after_first["status"] == after_second["status"] == "paid"
        assert after_second["net_amount_cents"] == 9991
        assert after_second["processing_fee_cents"] == 329
        assert after_second["payment_last4"] == "4242"
        for key in ("total_cents", "net_amount_cents", "processing_fee_cents", "metadata"):
            assert after_first[key] == after_second[key]

        listed = await client.get(f"{API}/invoices", params={"project_id": project_id})
        assert len(listed.json()) == 1

    async def test_unknown_gateway_invoice_mirrored(self, client: AsyncClient, seeded):
        project_id = seeded["project"].id

        ack = await _send_event(
            client,
            "invoice.finalized",
            {"id": "in_external", "status": "open", "total": 4200, "subtotal": 4200,
             "metadata": {"project_id": project_id}},
        )

        assert ack.json()["action"] == "invoice_finalized"
        listed = (await client.get(f"{API}/invoices", params={"project_id": project_id})).json()
        assert [(inv["gateway_invoice_id"], inv["status"], inv["total_cents"]) for inv in listed] == [
            ("in_external", "open", 4200)
        ]


@pytest.mark.asyncio
class TestBillingSweep:
    async def test_sweep_invoices_anchored_project(self, client: AsyncClient, seeded, gateway, db_session):
        project_id = seeded["project"].id
        await _queue_item(client, project_id, "Landing page", 10000)

        response = await client.post(
            "/api/jobs/billing-sweep",
            params={"date": "2024-03-05"},
            headers={"X-Cron-Secret": "cron-secret"},
        )

        assert response.status_code == 200, response.text
        summary = response.json()
        assert (summary["processed"], summary["created"], summary["errors"]) == (1, 1, 0)
        assert summary["results"][0]["finalized"] is True
        assert gateway.drafts[0].collection_method == "charge_automatically"
        assert gateway.sent == []

        db_session.expire_all()
        invoices = (await client.get(f"{API}/invoices", params={"project_id": project_id})).json()
        assert len(invoices) == 1
        assert invoices[0]["status"] == "open"
        assert invoices[0]["subtotal_cents"] == 160000

        periods = (await client.get(f"{API}/billing-periods", params={"project_id": project_id})).json()
        assert [(p["period_start"], p["period_end"]) for p in periods] == [("2024-02-05", "2024-03-04")]

    async def test_sweep_skips_other_anchor_days(self, client: AsyncClient, seeded, gateway):
        await _queue_item(client, seeded["project"].id, "Landing page", 10000)

        response = await client.post(
            "/api/jobs/billing-sweep",
            params={"date": "2024-03-06"},
            headers={"Authorization": "Bearer cron-secret"},
        )

        assert response.status_code == 200
        assert response.json()["processed"] == 0
        assert gateway.drafts == []


@pytest.mark.asyncio
class TestConcurrentCompose:
    async def test_racing_composes_bill_item_once(
        self, client: AsyncClient, seeded, gateway, settings, session_factory, db_session
    ):
        """
        Given: One pending item and two composers on separate sessions
        When: Both compose a draft for the item at the same time
        Then: Exactly one succeeds, the item is billed on its invoice and only one gateway draft survives
        """
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        command = ComposeInvoiceCommandDTO(
            created_by=USER_ID, billing_period_id=period_id, pending_item_ids=[item_id]
        )

        async def compose_in_own_session():
            async with session_factory() as session:
                return await build_compose_invoice(session, gateway, settings).execute(command)

        results = await asyncio.gather(compose_in_own_session(), compose_in_own_session())

        winners = [result for result in results if result.is_ok()]
        losers = [result for result in results if result.is_err()]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].error.code in ("CONFLICT", "VALIDATION_ERROR", "PERSISTENCE_ERROR")
        assert len(gateway.drafts) - len(gateway.deleted) == 1

        db_session.expire_all()
        billed = await client.get(f"{API}/pending-items", params={"project_id": project_id, "status": "billed"})
        assert [(item["id"], item["billed_invoice_id"]) for item in billed.json()] == [(item_id, winners[0].value.id)]
        invoices = (await client.get(f"{API}/invoices", params={"project_id": project_id})).json()
        assert [invoice["id"] for invoice in invoices] == [winners[0].value.id]


@pytest.mark.asyncio
class TestDraftEditing:
    async def test_delete_draft_requeues_items(self, client: AsyncClient, seeded, gateway):
        """
        Given: A draft invoice billing two pending items
        When: The draft is deleted
        Then: The gateway draft is deleted, the invoice is gone and both items are pending again
        """
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        first = await _queue_item(client, project_id, "Landing page", 10000)
        second = await _queue_item(client, project_id, "Support hours", 2500)
        invoice = (
            await client.post(
                f"{API}/invoices/draft",
                json={"billing_period_id": period_id, "pending_item_ids": [first, second]},
            )
        ).json()

        response = await client.delete(f"{API}/invoices/{invoice['id']}")

        assert response.status_code == 200, response.text
        assert response.json()["reverted_item_count"] == 2
        assert gateway.deleted == [invoice["gateway_invoice_id"]]
        assert (await client.get(f"{API}/invoices/{invoice['id']}")).status_code == 404

        pending = await client.get(f"{API}/pending-items", params={"project_id": project_id, "status": "pending"})
        assert {item["id"] for item in pending.json()} == {first, second}
        assert all(item["billed_invoice_id"] is None for item in pending.json())

    async def test_delete_finalized_invoice_is_409(self, client: AsyncClient, seeded, gateway):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        invoice = (
            await client.post(
                f"{API}/invoices/draft",
                json={"billing_period_id": period_id, "pending_item_ids": [item_id]},
            )
        ).json()
        await client.post(f"{API}/invoices/{invoice['id']}/finalize")

        response = await client.delete(f"{API}/invoices/{invoice['id']}")

        assert response.status_code == 409
        assert gateway.deleted == []

    async def test_add_line_item_to_draft(self, client: AsyncClient, seeded, gateway):
        project_id = seeded["project"].id
        period_id = await _open_period(client, project_id)
        item_id = await _queue_item(client, project_id, "Landing page", 10000)
        invoice = (
            await client.post(
                f"{API}/invoices/draft",
                json={"billing_period_id": period_id, "pending_item_ids": [item_id]},
            )
        ).json()

        response = await client.post(
            f"{API}/invoices/{invoice['id']}/line-items",
            json={"description": "Extra revisions", "quantity": "2", "unit_price_cents": 750},
        )

        assert response.status_code == 200, response.text
        updated = response.json()
        assert updated["subtotal_cents"] == 11500
        assert updated["processing_fee_cents"] == invoice["processing_fee_cents"]
        assert updated["total_cents"] == 11500 + invoice["processing_fee_cents"]
        assert updated["line_items"][-1]["description"] == "Extra revisions"
        assert updated["line_items"][-1]["amount_cents"] == 1500
        assert gateway.lines[invoice["gateway_invoice_id"]][-1] == {
            "description": "Extra revisions",
            "amount_cents": 1500,
        }
