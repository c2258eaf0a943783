import json
import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "dev.db"
INTENT = sys.argv[2] if len(sys.argv) > 2 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Finalization markers ===")
if INTENT:
    cur.execute(
        "SELECT id, key, status, attempts, response_body, last_error, created_at, updated_at FROM idempotency_records WHERE key=?",
        (f"finalize:{INTENT}",),
    )
else:
    cur.execute(
        "SELECT id, key, status, attempts, response_body, last_error, created_at, updated_at FROM idempotency_records ORDER BY created_at DESC LIMIT 20"
    )
for r in cur.fetchall():
    rb = r[4] or "NULL"
    try:
        rb = json.loads(rb) if isinstance(rb, str) else rb
    except ValueError:
        pass
    print(
        {
            "id": r[0],
            "key": r[1],
            "status": r[2],
            "attempts": r[3],
            "response_body": rb,
            "last_error": r[5],
            "created_at": r[6],
            "updated_at": r[7],
        }
    )

print("\n=== Payment intents ===")
if INTENT:
    cur.execute(
        "SELECT intent_id, user_id, amount, currency, status, decline_reason, cart_snapshot, updated_at FROM payment_intents WHERE intent_id=?",
        (INTENT,),
    )
else:
    cur.execute(
        "SELECT intent_id, user_id, amount, currency, status, decline_reason, cart_snapshot, updated_at FROM payment_intents ORDER BY created_at DESC LIMIT 20"
    )
for r in cur.fetchall():
    print(r)

print("\n=== Recent Orders ===")
cur.execute(
    "SELECT id, order_number, user_id, status, total_price, currency, payment_intent_id, created_at FROM orders ORDER BY created_at DESC LIMIT 20"
)
for r in cur.fetchall():
    print(r)

print("\n=== Low stock ===")
cur.execute("SELECT id, name, inventory FROM products WHERE inventory <= 2 ORDER BY inventory, id")
for r in cur.fetchall():
    print(r)

conn.close()
