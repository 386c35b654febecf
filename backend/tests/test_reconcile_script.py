import importlib.util
import io
import json
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from backend.db import FounderFields, InMemoryRecordStore
from backend.storage import InMemoryBlobStore

SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "reconcile_uploads.py"


def load_script():
    spec = importlib.util.spec_from_file_location("reconcile_uploads", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class ReconcileScriptTests(unittest.TestCase):
    def setUp(self):
        self.script = load_script()
        self.records = InMemoryRecordStore()
        self.blobs = InMemoryBlobStore()
        kept = self.blobs.save(b"a", "a.png", "image/png")
        self.records.insert(FounderFields("A", "b", "c"), kept)
        self.orphan = self.blobs.save(b"o", "o.png", "image/png")

    def _run(self, *argv):
        out = io.StringIO()
        with patch.object(self.script, "get_record_store", return_value=self.records), \
                patch.object(self.script, "get_blob_store", return_value=self.blobs), \
                patch.object(self.script, "reset_clients"), \
                redirect_stdout(out):
            code = self.script.main(list(argv))
        return code, out.getvalue()

    def test_dry_run_reports_orphans_only(self):
        code, output = self._run("--min-age", "0")
        self.assertEqual(code, 0)
        self.assertIn(f"orphaned: {self.orphan}", output)
        self.assertTrue(self.blobs.exists(self.orphan))

    def test_apply_removes_orphans(self):
        code, output = self._run("--apply", "--json", "--min-age", "0")
        self.assertEqual(code, 0)
        report = json.loads(output)
        self.assertEqual(report["removed"], [self.orphan])
        self.assertFalse(self.blobs.exists(self.orphan))

    def test_missing_image_sets_exit_code(self):
        ref = self.blobs.save(b"m", "m.png", "image/png")
        self.records.insert(FounderFields("M", "b", "c"), ref)
        self.blobs.delete(ref)
        code, output = self._run()
        self.assertEqual(code, 2)
        self.assertIn(f"missing:  {ref}", output)

    def test_default_run_leaves_fresh_uploads_alone(self):
        code, output = self._run("--apply")
        self.assertEqual(code, 0)
        self.assertIn(f"recent:   {self.orphan}", output)
        self.assertNotIn("orphaned:", output)
        self.assertTrue(self.blobs.exists(self.orphan))


if __name__ == "__main__":
    unittest.main()
