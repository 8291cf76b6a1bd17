"""
Quick diagnostic for the Supabase tables the backend reads and writes.

This script helps you:
1. Confirm SUPABASE_URL / SUPABASE_SERVICE_KEY are set
2. Check that the users, consultations and store_items tables answer queries
3. See how many consultants, open requests and store items exist

Usage:
    python scripts/check_collections.py
"""

import asyncio
import os
import sys

project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, os.path.join(project_root, "student_services", "src"))

from supabase import create_client

from student_services.config import load_settings
from student_services.consultation_manager import CONSULTATIONS_COLLECTION
from student_services.consultation_read_models import count_by_status
from student_services.consultation_models import Consultation
from student_services.document_store import SupabaseDocumentStore
from student_services.errors import ValidationError
from student_services.store_catalog import STORE_ITEMS_COLLECTION, StoreCatalog
from student_services.user_directory import USERS_COLLECTION, UserDirectory


async def probe(store: SupabaseDocumentStore, default_hourly_rate: float) -> bool:
    ok = True

    for collection in (USERS_COLLECTION, CONSULTATIONS_COLLECTION, STORE_ITEMS_COLLECTION):
        try:
            rows = await store.query(collection)
            print(f"✅ {collection}: {len(rows)} rows")
        except Exception as e:
            print(f"❌ {collection}: query failed: {e}")
            ok = False

    if not ok:
        return False

    consultants = await UserDirectory(store, default_hourly_rate).list_consultants()
    print(f"\n👥 Consultants: {len(consultants)}")
    for consultant in consultants[:5]:
        print(f"   - {consultant.name} ({consultant.title}), {consultant.hourly_rate:.0f}/h")

    documents = await store.query(CONSULTATIONS_COLLECTION)
    consultations = []
    for doc_id, data in documents:
        try:
            consultations.append(Consultation.from_document(doc_id, data))
        except ValidationError as e:
            print(f"⚠️ consultation {doc_id} is malformed: {e}")
    counts = count_by_status(consultations)
    print("\n🗓️ Consultations by status:")
    for status, count in counts.items():
        print(f"   {status:10s} {count}")

    unassigned = await store.query(CONSULTATIONS_COLLECTION, {"mentor_id": None, "status": "pending"})
    print(f"   open pool  {len(unassigned)}")

    items = await StoreCatalog(store).fetch_items()
    in_stock = sum(1 for item in items if item.in_stock)
    print(f"\n🛒 Store items: {len(items)} ({in_stock} in stock)")
    return True


def main() -> int:
    settings = load_settings()

    print("SUPABASE_URL:", settings.supabase_url)
    key = settings.supabase_service_key
    print("SUPABASE_SERVICE_KEY (prefix):", key[:12] + "..." if key else None)

    if not settings.supabase_configured:
        print("❌ Missing SUPABASE_URL or SUPABASE_SERVICE_KEY")
        return 1

    store = SupabaseDocumentStore(create_client(settings.supabase_url, key))
    return 0 if asyncio.run(probe(store, settings.default_hourly_rate)) else 1


if __name__ == "__main__":
    raise SystemExit(main())
