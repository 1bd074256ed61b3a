import base64
import os

from sqlalchemy import Engine
from sqlmodel import Session, create_engine, select

from orderdesk.models.schema import Order

FIELDS = ("username", "password")


def corrupt_order_secret(engine: Engine, order_id: int, field: str):
    with Session(engine) as session:
        order = session.exec(select(Order).where(Order.id == order_id)).first()

        if order is None:
            print(f"[!] No order with id {order_id}")
            return

        blob = base64.b64decode(getattr(order, field))
        if not blob:
            print(f"[!] Order {order_id} has an empty {field}")
            return

        # Flip one byte past the nonce so the tag check fails on read
        tampered = bytearray(blob)
        position = min(len(tampered) - 1, 12 + os.urandom(1)[0] % 4)
        tampered[position] ^= 0xFF

        setattr(order, field, base64.b64encode(bytes(tampered)).decode())
        session.add(order)
        session.commit()

        print(f"[✔] Corrupted {field} of order #{order_id} at byte {position}")


if __name__ == "__main__":
    import argparse

    from orderdesk.shared.db import engine

    def parse_args():
        parser = argparse.ArgumentParser(
            description="Simulate tampering with an order's encrypted credentials"
        )
        parser.add_argument("order_id", type=int, help="Order to target")
        parser.add_argument(
            "--field", choices=FIELDS, default="password", help="Column to corrupt"
        )
        parser.add_argument("--db", type=str, help="SQLite database path override")
        return parser.parse_args()

    args = parse_args()
    if args.db:
        engine = create_engine(args.db)

    corrupt_order_secret(engine, args.order_id, args.field)
