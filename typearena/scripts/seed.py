"""
Idempotent seed script: one active demo event with a handful of invite codes.
Run via: python -m typearena.scripts.seed
"""
import asyncio

from dotenv import load_dotenv

load_dotenv()

from typearena.storage import get_store, get_users_with_default_admin  # noqa: E402

DEMO_EVENT_NAME = "Demo Typing Cup"
DEMO_TEXT = (
    "The quick brown fox jumps over the lazy dog.\n"
    "Pack my box with five dozen liquor jugs.\n"
)
DEMO_PARTICIPANTS = [
    {"name": f"Student {idx}", "class_name": f"{8 + idx % 2}A"} for idx in range(1, 6)
]


async def seed():
    store = get_store()
    get_users_with_default_admin()
    print("✓ Admin user present")

    events = await store.list_events()
    event = next((e for e in events if e.get("name") == DEMO_EVENT_NAME), None)
    if event is None:
        event = await store.create_event(
            {
                "name": DEMO_EVENT_NAME,
                "description": "Seeded demo event",
                "status": "active",
                "typing_text": DEMO_TEXT,
                "timer_duration": 60,
            }
        )
        print(f"✓ Created event: {event['name']} (id={event['id']})")
    else:
        print(f"✓ Event {event['name']} already exists (id={event['id']})")

    codes = await store.list_invite_codes(event["id"])
    if not codes:
        codes = await store.create_invite_codes(event["id"], DEMO_PARTICIPANTS)
        for invite in codes:
            print(f"  ✓ {invite['code']}  {invite['name']} ({invite['class_name']})")
    else:
        print(f"  ✓ {len(codes)} invite codes already exist")

    print("\n✓ Seed completed successfully")


if __name__ == "__main__":
    asyncio.run(seed())
