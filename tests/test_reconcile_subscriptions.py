from dental_saas.models.subscription import Subscription
from dental_saas.services.payment_gateway import PaymentGatewayError
from dental_saas.services.subscriptions import period_bounds, reconcile_subscriptions
from tests.fixtures_data import make_company, remote_subscription


def test_period_bounds_fall_back_to_start_date_plus_thirty_days():
    start, end = period_bounds({"start_date": 1_700_000_000})

    assert (end - start).days == 30


def test_period_bounds_read_item_level_periods():
    start, end = period_bounds(remote_subscription())

    assert start.timestamp() == 1_700_000_000
    assert end.timestamp() == 1_702_592_000


def test_reconcile_recovers_missing_mirror_and_skips_unknown(db, fake_gateway):
    company = make_company(db)
    fake_gateway.subscriptions["sub_known"] = remote_subscription("sub_known", company_id=company.id)
    fake_gateway.subscriptions["sub_orphan"] = remote_subscription("sub_orphan")

    summary = reconcile_subscriptions(db, fake_gateway)

    assert summary == {"synced": 1, "skipped": 1, "failed": 0}
    mirror = db.query(Subscription).one()
    assert mirror.id == "sub_known"
    assert mirror.company_id == company.id


def test_reconcile_continues_after_a_failure(db, fake_gateway, monkeypatch):
    company = make_company(db)
    fake_gateway.subscriptions["sub_a"] = remote_subscription("sub_a", company_id=company.id)
    fake_gateway.subscriptions["sub_b"] = remote_subscription("sub_b", company_id=company.id)
    original = fake_gateway.retrieve_subscription

    def flaky(subscription_id, expand=None):
        if subscription_id == "sub_a":
            raise PaymentGatewayError("timeout")
        return original(subscription_id, expand=expand)

    monkeypatch.setattr(fake_gateway, "retrieve_subscription", flaky)

    summary = reconcile_subscriptions(db, fake_gateway)

    assert summary == {"synced": 1, "skipped": 0, "failed": 1}
    assert [row.id for row in db.query(Subscription).all()] == ["sub_b"]
