import hashlib
import tempfile
import unittest
from pathlib import Path

from agentsync.errors import FileSystemError
from agentsync.hashing import HASH_PREFIX, compute_file_hash


class TestComputeFileHash(unittest.TestCase):
    def test_hash_is_prefixed_sha256_of_bytes(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "SKILL.md"
            path.write_bytes(b"---\nname: a\n---\nbody\n")

            digest = compute_file_hash(path)

        self.assertTrue(digest.startswith(HASH_PREFIX))
        self.assertEqual(digest, "sha256:" + hashlib.sha256(b"---\nname: a\n---\nbody\n").hexdigest())

    def test_any_byte_change_changes_hash(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "SKILL.md"
            path.write_bytes(b"hello\n")
            before = compute_file_hash(path)
            path.write_bytes(b"hello\r\n")
            after = compute_file_hash(path)

        self.assertNotEqual(before, after)

    def test_same_content_same_hash(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            a = Path(td) / "a.md"
            b = Path(td) / "b.md"
            a.write_text("same\n", encoding="utf-8")
            b.write_text("same\n", encoding="utf-8")

            self.assertEqual(compute_file_hash(a), compute_file_hash(b))

    def test_missing_file_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(FileSystemError):
                compute_file_hash(Path(td) / "missing.md")


if __name__ == "__main__":
    unittest.main()
