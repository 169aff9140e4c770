import sys
from datetime import date
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

ACTOR = "user-1"
OTHER_ACTOR = "user-2"
TODAY = date(2024, 3, 15)


@pytest.fixture
def app(tmp_path: Path):
    from bsm.application.container import build_container

    return build_container(tmp_path / "billing.db", today=lambda: TODAY)


def add_item(app, actor=ACTOR, sku="SKU-X", name="Widget", cost="2.00", selling="5.00"):
    return app.catalog.add_item(actor, sku, name, "pcs", cost, selling)


def add_client(app, actor=ACTOR, name="Acme Ltd"):
    return app.catalog.add_client(actor, name, email="billing@acme.test")


def receive_lot(app, actor=ACTOR, item=None, quantity="10", cost="2.00"):
    """Purchase ``quantity`` units of ``item`` and return the lot it created."""
    item = item or add_item(app, actor)
    bill = app.purchases.create_purchase_bill(
        actor,
        [{"item_id": item.id, "quantity": quantity, "cost_price": cost}],
    )
    return bill.lots[0]
