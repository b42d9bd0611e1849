"""
E2E scenarios for two households driven entirely through the API.

Households:
- landlord: rental income, mortgage, card and utilities; cash is healthy
- tight_cash: an overdue city fine and a gas bill against a thin balance
"""

from datetime import date, timedelta
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

TODAY = date(2026, 3, 15)


def test_landlord_daily_sync(client: TestClient, db: Session, make_account, make_obligation, make_transaction):
    """
    landlord: the daily sync reconciles the paid utility, learns the rent
    roll and leaves a draft plan funded by it
    """
    checking = make_account(250_000, name="Landlord Checking", source="plaid")
    make_account(100_000, account_type="savings", name="Reserve")
    make_account(-80_000, account_type="credit_card", name="Chase Sapphire")

    make_obligation(payee="Mr. Cooper", amount_due_cents=180_000, category="mortgage",
                    due_date=date(2026, 4, 1), recurrence="monthly", recurrence_day=1)
    comed = make_obligation(payee="ComEd Electric", amount_due_cents=15_000, due_date=date(2026, 3, 10),
                            late_fee_cents=2_500)
    make_obligation(payee="Chase", amount_due_cents=80_000, amount_minimum_cents=3_500,
                    category="credit_card", due_date=date(2026, 3, 25))

    for month in ((2025, 12), (2026, 1), (2026, 2), (2026, 3)):
        make_transaction(210_000, date(month[0], month[1], 1), direction="inflow",
                         counterparty="TurboTenant", account_id=checking.id)
    make_transaction(15_000, date(2026, 3, 12), description="COMED ELECTRIC PAYMENT", account_id=checking.id)

    sync = client.post("/v1/sync/run").json()

    assert sync["status"] == "completed"
    assert all(phase["succeeded"] for phase in sync["phases"])

    db.expire_all()
    assert comed.status == "paid"

    sources = client.get("/v1/revenue").json()
    assert [(s["description"], s["recurrence"], s["next_expected_date"]) for s in sources] == [
        ("TurboTenant", "monthly", "2026-04-01")
    ]

    plan = client.get("/v1/payment-plan").json()
    assert plan["status"] == "draft"
    assert plan["starting_balance_cents"] == 350_000
    assert plan["total_late_fees_risked_cents"] == 0
    assert plan["revenue_summary"][0]["source"] == "TurboTenant"
    assert {e["payee"] for e in plan["schedule"]} == {"Mr. Cooper", "Chase"}

    assert client.get("/v1/queue").json() == []
    assert client.get("/v1/projections", params={"days": 30}).json()[0]["projected_balance_cents"] == 357_000


def test_tight_cash_triage_and_decisions(client: TestClient, make_account, make_obligation):
    """
    tight_cash: triage asks to pay the fine, defer gas and flags the
    shortfall; decisions feed the stats and a rerun only adds the new warning
    """
    make_account(20_000)
    make_obligation(payee="City of Chicago", amount_due_cents=40_000, category="legal",
                    due_date=TODAY - timedelta(days=14), late_fee_cents=7_500)
    make_obligation(payee="Peoples Gas", amount_due_cents=30_000, due_date=TODAY + timedelta(days=5))

    triage = client.post("/v1/triage/run").json()
    assert triage["recommendations_created"] == 3
    assert triage["cash_position"]["surplus_cents"] == -50_000

    queue = client.get("/v1/queue").json()
    by_type = {item["rec_type"]: item for item in queue}
    assert by_type["payment"]["title"] == "Pay City of Chicago immediately"
    assert by_type["warning"]["title"] == "Cash shortfall: -$500 in 30 days"
    assert by_type["defer"]["title"] == "Defer Peoples Gas - cash is tight"
    assert queue[-1]["rec_type"] == "defer"

    session = {"session_id": "morning-review"}
    assert client.post(f"/v1/queue/{by_type['payment']['id']}/decide",
                       json={"decision": "approved", **session}).status_code == 200
    assert client.post(f"/v1/queue/{by_type['warning']['id']}/decide",
                       json={"decision": "rejected", **session}).status_code == 200
    assert client.post(f"/v1/queue/{by_type['defer']['id']}/decide",
                       json={"decision": "deferred", **session}).status_code == 200

    stats = client.get("/v1/queue/stats", params=session).json()
    assert (stats["approved"], stats["rejected"], stats["deferred"], stats["total"]) == (1, 1, 1, 3)
    assert stats["savings_cents"] == 7_500

    remaining = client.get("/v1/queue").json()
    assert [(item["rec_type"], item["priority"]) for item in remaining] == [("defer", 6)]

    rerun = client.post("/v1/triage/run").json()
    assert rerun["recommendations_created"] == 1
    assert rerun["cash_position"]["surplus_cents"] == -10_000
    titles = [item["title"] for item in client.get("/v1/queue").json()]
    assert titles == ["Cash shortfall: -$100 in 30 days", "Defer Peoples Gas - cash is tight"]


def test_tight_cash_strategies_compared(client: TestClient, make_account, make_obligation):
    """Each strategy handles the same squeeze its own way and still balances to the cent"""
    make_account(20_000)
    make_obligation(payee="Peoples Gas", amount_due_cents=30_000, due_date=TODAY + timedelta(days=5),
                    grace_period_days=10)
    make_obligation(payee="Chase", amount_due_cents=15_000, amount_minimum_cents=2_500,
                    category="credit_card", due_date=TODAY + timedelta(days=8))

    results = {}
    for strategy in ("optimal", "conservative", "aggressive"):
        response = client.post("/v1/payment-plan/simulate", json={"strategy": strategy, "horizon_days": 30})
        assert response.status_code == 200
        results[strategy] = response.json()

    def actions(strategy):
        return [(e["date"], e["payee"], e["action"]) for e in results[strategy]["schedule"]]

    assert actions("optimal") == [("2026-03-20", "Peoples Gas", "at_risk"), ("2026-03-23", "Chase", "pay_full")]
    assert actions("conservative") == [
        ("2026-03-20", "Peoples Gas", "at_risk"),
        ("2026-03-23", "Chase", "pay_minimum"),
    ]
    assert actions("aggressive") == [("2026-03-23", "Chase", "pay_full"), ("2026-03-30", "Peoples Gas", "at_risk")]
    assert results["aggressive"]["schedule"][1]["grace_used"] is True
    assert results["conservative"]["ending_balance_cents"] == 17_500

    for plan in results.values():
        assert plan["ending_balance_cents"] == (
            plan["starting_balance_cents"] + plan["total_inflows_cents"] - plan["total_outflows_cents"]
        )
