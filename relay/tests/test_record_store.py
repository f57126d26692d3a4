import threading
import unittest

from relay import tables
from relay.airtable import InMemoryTableClient
from relay.errors import InvalidFieldValueError, RecordNotFoundError, TableStoreError
from relay.record_store import ATTACHMENT_COUNTER_FIELD, RecordStore, coerce_main_fields

MAIN = tables.MAIN_TABLE_ID
TASKS = tables.resolve_table(tables.TASKS)
COUNTER = tables.resolve_table(tables.COUNTER)


class RecordStoreTestCase(unittest.TestCase):
    def setUp(self):
        self.client = InMemoryTableClient()
        self.store = RecordStore(self.client)

    def pages(self, operation):
        return [size for op, _, size in self.client.calls if op == operation]


class CoercionTests(unittest.TestCase):
    def test_currency_fields_become_numbers(self):
        fields = coerce_main_fields(
            {"Full Cost": "1500", "Paid": "", "Balance": "12.75", "Notes": "42"}
        )

        self.assertEqual(fields["Full Cost"], 1500)
        self.assertEqual(fields["Paid"], 0)
        self.assertEqual(fields["Balance"], 12.75)
        self.assertEqual(fields["Notes"], "42")

    def test_missing_and_numeric_values(self):
        fields = coerce_main_fields({"Paid": None, "Balance": 3.5})

        self.assertEqual(fields, {"Paid": 0, "Balance": 3.5})

    def test_non_numeric_text_is_rejected(self):
        with self.assertRaises(InvalidFieldValueError) as ctx:
            coerce_main_fields({"Full Cost": "a lot"})
        self.assertEqual(ctx.exception.field_name, "Full Cost")


class WriteTests(RecordStoreTestCase):
    def test_create_many_pages_and_preserves_order(self):
        records = [{"fields": {"name": f"t{i}"}} for i in range(25)]

        created = self.store.create_many(records, tables.TASKS)

        self.assertEqual([r.fields["name"] for r in created], [f"t{i}" for i in range(25)])
        self.assertEqual(self.pages("create"), [10, 10, 5])
        self.assertEqual(len(self.client.tables[TASKS]), 25)

    def test_create_many_coerces_main_table_only(self):
        main = self.store.create_many([{"fields": {"Paid": "5"}}], "projects")
        other = self.store.create_many([{"fields": {"Paid": "5"}}], tables.TASKS)

        self.assertEqual(main[0].fields["Paid"], 5)
        self.assertEqual(other[0].fields["Paid"], "5")

    def test_create_many_does_not_mutate_input(self):
        records = [{"fields": {"Paid": ""}}]

        self.store.create_many(records, "projects")

        self.assertEqual(records, [{"fields": {"Paid": ""}}])

    def test_failed_page_keeps_earlier_pages(self):
        ids = [self.client.seed(TASKS, {"n": i})["id"] for i in range(10)]
        updates = [{"id": record_id, "fields": {"done": True}} for record_id in ids]
        updates += [{"id": "recMissing", "fields": {"done": True}}]

        with self.assertRaises(TableStoreError):
            self.store.update_many(updates, tables.TASKS)

        self.assertEqual(self.pages("update"), [10, 1])
        self.assertTrue(
            all(r["fields"]["done"] for r in self.client.tables[TASKS].values())
        )

    def test_delete_many_returns_ids_in_pages(self):
        ids = [self.client.seed(TASKS, {"n": i})["id"] for i in range(21)]

        deleted = self.store.delete_many(ids, tables.TASKS)

        self.assertEqual(deleted, ids)
        self.assertEqual(self.pages("delete"), [10, 10, 1])
        self.assertEqual(self.client.tables[TASKS], {})

    def test_update_one_missing_record(self):
        with self.assertRaises(RecordNotFoundError):
            self.store.update_one("recNope", {"a": 1}, tables.TASKS)


class ReadTests(RecordStoreTestCase):
    def test_get_one_counter_uses_singleton(self):
        self.client.seed(COUNTER, {ATTACHMENT_COUNTER_FIELD: 3}, tables.COUNTER_RECORD_ID)

        record = self.store.get_one(tables.COUNTER, "recWhatever")

        self.assertEqual(record.id, tables.COUNTER_RECORD_ID)

    def test_get_filtered_uses_table_strategy(self):
        self.client.seed(TASKS, {"assigned_to": "sam@example.com"})
        self.client.seed(TASKS, {"Project ID (from Project ID)": ["sam@example.com"]})

        records = self.store.get_filtered("sam@example.com", tables.TASKS)

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].fields["assigned_to"], "sam@example.com")

    def test_get_by_ids(self):
        wanted = [self.client.seed(TASKS, {"n": i})["id"] for i in range(3)]
        self.client.seed(TASKS, {"n": 99})

        records = self.store.get_by_ids(wanted[:2], tables.TASKS)

        self.assertEqual(sorted(r.id for r in records), sorted(wanted[:2]))

    def test_get_by_ids_empty_skips_the_store(self):
        self.assertEqual(self.store.get_by_ids([], tables.TASKS), [])
        self.assertEqual(self.client.calls, [])

    def test_find_task_record_id(self):
        seeded = self.client.seed(TASKS, {"id": "T-001"})

        self.assertEqual(self.store.find_task_record_id("T-001"), seeded["id"])
        self.assertIsNone(self.store.find_task_record_id("T-404"))


class BarrierTableClient(InMemoryTableClient):
    """Holds every reader until ``parties`` readers have read."""

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties)

    def get_record(self, table, record_id):
        record = super().get_record(table, record_id)
        self.barrier.wait(timeout=5)
        return record


class AttachmentCounterTests(unittest.TestCase):
    def test_increments_counter(self):
        client = InMemoryTableClient()
        client.seed(COUNTER, {ATTACHMENT_COUNTER_FIELD: 41}, tables.COUNTER_RECORD_ID)
        store = RecordStore(client)

        self.assertEqual(store.next_attachment_id(), 42)
        self.assertEqual(store.next_attachment_id(), 43)

    def test_concurrent_callers_can_lose_an_increment(self):
        client = BarrierTableClient(parties=2)
        client.seed(COUNTER, {ATTACHMENT_COUNTER_FIELD: 7}, tables.COUNTER_RECORD_ID)
        store = RecordStore(client)
        issued = []

        threads = [
            threading.Thread(target=lambda: issued.append(store.next_attachment_id()))
            for _ in range(2)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        self.assertEqual(issued, [8, 8])
        stored = client.tables[COUNTER][tables.COUNTER_RECORD_ID]["fields"]
        self.assertEqual(stored[ATTACHMENT_COUNTER_FIELD], 8)


if __name__ == "__main__":
    unittest.main()
