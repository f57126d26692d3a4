import unittest

from relay import tables


class ResolveTableTests(unittest.TestCase):
    def test_known_names_map_to_their_ids(self):
        for name, table_id in tables.TABLE_IDS.items():
            self.assertEqual(tables.resolve_table(name), table_id)

    def test_everything_else_maps_to_main_table(self):
        for name in ("projects", "project_messages", "main_table", "", None, "typo"):
            self.assertEqual(tables.resolve_table(name), tables.MAIN_TABLE_ID)
            self.assertTrue(tables.is_main_table(name))

    def test_counter_always_uses_singleton_record(self):
        self.assertEqual(
            tables.resolve_record_id(tables.COUNTER, "recOther"),
            tables.COUNTER_RECORD_ID,
        )
        self.assertEqual(tables.resolve_record_id(tables.TASKS, "rec1"), "rec1")


class FilterFormulaTests(unittest.TestCase):
    def test_actions_match_project_id(self):
        self.assertEqual(
            tables.filter_formula("P-1", tables.ACTIONS), '{Project ID} = "P-1"'
        )

    def test_tasks_switch_on_email_anchor(self):
        self.assertEqual(
            tables.filter_formula("sam@example.com", tables.TASKS),
            '{assigned_to} = "sam@example.com"',
        )
        self.assertEqual(
            tables.filter_formula("P-1", tables.TASKS),
            '{Project ID (from Project ID)} = "P-1"',
        )

    def test_task_children_match_task_link(self):
        for name in (
            tables.TASK_ATTACHMENTS,
            tables.TASK_CHECKLISTS,
            tables.TASK_FORMS_SUBMISSIONS,
            tables.TASK_CHAT,
        ):
            self.assertEqual(
                tables.filter_formula("T-9", name), '{id (from task_id)} = "T-9"'
            )

    def test_form_fields_search_linked_array(self):
        self.assertEqual(
            tables.filter_formula("recForm", tables.TASK_FORMS_FIELDS),
            'FIND("recForm", ARRAYJOIN({task_form}))',
        )

    def test_task_groups_and_default(self):
        self.assertEqual(
            tables.filter_formula("P-1", tables.TASK_GROUPS),
            '{Project ID (from projectID)} = "P-1"',
        )
        self.assertEqual(
            tables.filter_formula("P-1", "project_messages"),
            '{Project ID (from Project ID)} = "P-1"',
        )

    def test_anchor_is_escaped(self):
        self.assertEqual(tables.quote('say "hi"\\'), '"say \\"hi\\"\\\\"')

    def test_record_ids_formula(self):
        self.assertEqual(
            tables.record_ids_formula(["rec1", "rec2"]),
            'OR(RECORD_ID() = "rec1", RECORD_ID() = "rec2")',
        )

    def test_record_ids_formula_escapes_quotes(self):
        self.assertEqual(
            tables.record_ids_formula(["rec1') OR (TRUE()", 'rec"2']),
            'OR(RECORD_ID() = "rec1\') OR (TRUE()", RECORD_ID() = "rec\\"2")',
        )

    def test_client_login_formula(self):
        self.assertEqual(
            tables.client_login_formula("Alpha", "A-1"),
            'AND({Project Name} = "Alpha", {Project ID} = "A-1")',
        )


if __name__ == "__main__":
    unittest.main()
