import sys
from typing import List

from tabulate import tabulate

from laundry_orders.config import Settings
from laundry_orders.db.store import OrderStore
from laundry_orders.types.order_types import Order, isoformat

HEADERS = ["Order ID", "Name", "Room", "Status", "Total", "Royalty", "Payment", "Created At", "Updated At"]


def render_orders(orders: List[Order]) -> str:
    rows = [(
        o.id,
        o.customer_name,
        o.room,
        o.status.value,
        f"{o.total_amount:.2f}",
        f"{o.royalty_fee:.2f}",
        o.payment_method,
        isoformat(o.created_at),
        isoformat(o.updated_at),
    ) for o in orders]
    return tabulate(rows, headers=HEADERS, tablefmt="grid")


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    database_url = argv[0] if argv else Settings.from_env().resolved_database_url
    store = OrderStore(database_url)
    orders = store.find_all()
    print(f"\n🔹 Orders ({len(orders)})")
    print(render_orders(orders))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
