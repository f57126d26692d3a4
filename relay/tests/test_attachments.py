import json
import unittest

from relay import tables
from relay.airtable import InMemoryTableClient
from relay.attachments import AttachMode, AttachmentRelay, content_object_name
from relay.errors import ContentFetchError
from relay.record_store import RecordStore
from relay.storage import InMemoryStorageClient
from shared.records import AttachmentRef

TASKS = tables.resolve_table(tables.TASKS)


class AttachmentRelayTestCase(unittest.TestCase):
    def setUp(self):
        self.client = InMemoryTableClient()
        self.storage = InMemoryStorageClient()
        self.relay = AttachmentRelay(
            RecordStore(self.client),
            self.storage,
            fetch_text=self.storage.read_url,
            clock=lambda: 1700000000.5,
        )

    def fields(self, record_id):
        return self.client.tables[TASKS][record_id]["fields"]


class UploadTests(AttachmentRelayTestCase):
    def test_store_names_object_by_time(self):
        ref = self.relay.store(b"data", "report.pdf", "application/pdf")

        self.assertEqual(ref.filename, "report.pdf")
        self.assertEqual(
            ref.url, "https://storage.googleapis.com/test-bucket/1700000000500-report.pdf"
        )
        self.assertEqual(
            self.storage.content_types["1700000000500-report.pdf"], "application/pdf"
        )

    def test_store_defaults_content_type(self):
        self.relay.store(b"data", "blob", None)

        self.assertEqual(
            self.storage.content_types["1700000000500-blob"],
            "application/octet-stream",
        )

    def test_append_keeps_existing_attachments(self):
        first = {"url": "https://example.test/a", "filename": "a"}
        record = self.client.seed(TASKS, {"files": [first]})

        result = self.relay.upload(
            b"b", "b", "text/plain", record["id"], "files", tables.TASKS
        )

        self.assertEqual([a["filename"] for a in result], ["a", "b"])
        self.assertEqual(self.fields(record["id"])["files"], result)

    def test_append_to_empty_field(self):
        record = self.client.seed(TASKS, {})

        result = self.relay.upload(
            b"b", "b", "text/plain", record["id"], "files", tables.TASKS
        )

        self.assertEqual(len(result), 1)

    def test_replace_drops_existing_attachments(self):
        first = {"url": "https://example.test/a", "filename": "a"}
        record = self.client.seed(TASKS, {"files": [first]})

        result = self.relay.upload(
            b"b", "b", "text/plain", record["id"], "files", tables.TASKS,
            AttachMode.REPLACE,
        )

        self.assertEqual([a["filename"] for a in result], ["b"])
        ops = [op for op, _, _ in self.client.calls]
        self.assertNotIn("get", ops)

    def test_attach_existing_ref(self):
        record = self.client.seed(TASKS, {})
        ref = AttachmentRef(url="https://example.test/x.png", filename="x.png")

        result = self.relay.attach(
            record["id"], "image", tables.TASKS, ref, AttachMode.REPLACE
        )

        self.assertEqual(result, [ref.as_dict()])


class NamedContentTests(AttachmentRelayTestCase):
    def test_object_name_is_deterministic(self):
        self.assertEqual(
            content_object_name("tasks", "rec1", "Notes"), "content-tasks-rec1-Notes.json"
        )

    def test_saving_twice_overwrites_the_same_object(self):
        record = self.client.seed(TASKS, {})

        first = self.relay.store_named_content(tables.TASKS, record["id"], "Notes", '"v1"')
        second = self.relay.store_named_content(tables.TASKS, record["id"], "Notes", '"v2"')

        self.assertEqual(first, second)
        self.assertEqual(len(self.storage.stored_objects), 1)
        self.assertEqual(self.fields(record["id"])["Notes"], [second.as_dict()])
        name = second.filename
        self.assertEqual(self.storage.content_types[name], "application/json")
        metadata = self.storage.object_metadata[name]
        self.assertEqual(metadata["recordId"], record["id"])
        self.assertEqual(metadata["tableName"], tables.TASKS)
        self.assertEqual(metadata["fieldName"], "Notes")
        self.assertIn("uploadedAt", metadata)

    def test_write_named_content_leaves_record_alone(self):
        record = self.client.seed(TASKS, {"Notes": "old"})

        self.relay.write_named_content(tables.TASKS, record["id"], "Notes", "{}")

        self.assertEqual(self.fields(record["id"])["Notes"], "old")

    def test_fetch_named_content(self):
        record = self.client.seed(TASKS, {})
        self.relay.store_named_content(
            tables.TASKS, record["id"], "Notes", json.dumps({"a": 1})
        )

        found = self.relay.fetch_named_content(tables.TASKS, record["id"], "Notes")

        self.assertEqual(json.loads(found.content), {"a": 1})
        self.assertEqual(found.source, "attachment")

    def test_fetch_named_content_empty_field(self):
        record = self.client.seed(TASKS, {"Notes": []})

        self.assertIsNone(
            self.relay.fetch_named_content(tables.TASKS, record["id"], "Notes")
        )

    def test_fetch_errors_propagate(self):
        def failing_fetch(url):
            raise ContentFetchError("503")

        self.relay.fetch_text = failing_fetch
        record = self.client.seed(
            TASKS, {"Notes": [{"url": "https://example.test/n", "filename": "n"}]}
        )

        with self.assertRaises(ContentFetchError):
            self.relay.fetch_named_content(tables.TASKS, record["id"], "Notes")


class HybridContentTests(AttachmentRelayTestCase):
    def test_prefers_attachment(self):
        record = self.client.seed(TASKS, {})
        self.relay.store_named_content(tables.TASKS, record["id"], "description", '"new"')

        found = self.relay.fetch_hybrid_content(tables.TASKS, record["id"], "description")

        self.assertEqual(found.source, "attachment")
        self.assertEqual(found.content, '"new"')

    def test_falls_back_to_plain_text(self):
        record = self.client.seed(TASKS, {"description": "legacy"})

        found = self.relay.fetch_hybrid_content(tables.TASKS, record["id"], "description")

        self.assertEqual(found.source, "fallback")
        self.assertEqual(found.content, "legacy")
        self.assertIsNone(found.filename)

    def test_failed_fetch_does_not_raise(self):
        def failing_fetch(url):
            raise ContentFetchError("503")

        self.relay.fetch_text = failing_fetch
        record = self.client.seed(
            TASKS, {"Notes": [{"url": "https://example.test/n", "filename": "n"}]}
        )

        with self.assertLogs("relay.attachments", level="WARNING"):
            found = self.relay.fetch_hybrid_content(tables.TASKS, record["id"], "Notes")
        self.assertIsNone(found)

    def test_nothing_stored(self):
        record = self.client.seed(TASKS, {})

        self.assertIsNone(
            self.relay.fetch_hybrid_content(tables.TASKS, record["id"], "Notes")
        )


if __name__ == "__main__":
    unittest.main()
