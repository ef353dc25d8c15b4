import json
import tempfile
import unittest
from pathlib import Path

from agentsync.catalog import MANIFEST_RELPATH, add_skill, build_manifest, init_catalog, validate_catalog
from agentsync.discovery import discover_skills
from agentsync.errors import ValidationError
from agentsync.hashing import compute_file_hash


class TestCatalogAuthoring(unittest.TestCase):
    def test_init_is_idempotent(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            first = init_catalog(root, "Team Skills")
            second = init_catalog(root, "Team Skills")

            self.assertTrue((root / "skills").is_dir())
            self.assertIn("# Team Skills", (root / "README.md").read_text(encoding="utf-8"))

        self.assertTrue(first.skills_dir_created and first.readme_created)
        self.assertFalse(second.skills_dir_created or second.readme_created)

    def test_add_skill_requires_catalog(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            with self.assertRaises(ValidationError):
                add_skill(Path(td), "my-skill")

    def test_added_skill_is_discoverable_and_valid(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            init_catalog(root, "Team Skills")
            skill_md = add_skill(root, "Code Review", description="Reviews code", tags="review, quality")

            skills = discover_skills(root)
            errors = validate_catalog(root)

        self.assertEqual(skill_md.parent.name, "code-review")
        self.assertEqual(skills["code-review"].description, "Reviews code")
        self.assertEqual(skills["code-review"].tags, ("review", "quality"))
        self.assertEqual(skills["code-review"].license, "MIT")
        self.assertEqual(errors, [])

    def test_add_existing_skill_raises(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            init_catalog(root, "x")
            add_skill(root, "my-skill")
            with self.assertRaises(ValidationError):
                add_skill(root, "my-skill")

    def test_validate_reports_problems(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            init_catalog(root, "x")
            (root / "skills" / "empty-folder").mkdir()
            mismatch = root / "skills" / "folder-a"
            mismatch.mkdir()
            (mismatch / "SKILL.md").write_text("---\nname: other-name\ndescription: d\n---\nbody\n", encoding="utf-8")
            no_desc = root / "skills" / "no-desc"
            no_desc.mkdir()
            (no_desc / "SKILL.md").write_text("---\nname: no-desc\n---\nbody\n", encoding="utf-8")

            errors = validate_catalog(root)

        joined = "\n".join(errors)
        self.assertIn("empty-folder: Missing SKILL.md", joined)
        self.assertIn("does not match folder name", joined)
        self.assertIn("no-desc: Missing 'description'", joined)

    def test_build_manifest_records_hashes(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            init_catalog(root, "x")
            skill_md = add_skill(root, "my-skill", description="Does it", tags="a,b")

            path = build_manifest(root, catalog_id="team/skills", name="Team", version="2.0.0")
            manifest = json.loads(path.read_text(encoding="utf-8"))
            expected_hash = compute_file_hash(skill_md)

            self.assertEqual(path, root / MANIFEST_RELPATH)
            rebuilt = json.loads(build_manifest(root, catalog_id="team/skills").read_text(encoding="utf-8"))

        self.assertEqual(manifest["id"], "team/skills")
        self.assertEqual(manifest["version"], "2.0.0")
        entry = manifest["skills"]["my-skill"]
        self.assertEqual(entry["hash"], expected_hash)
        self.assertEqual(entry["path"], "skills/my-skill/SKILL.md")
        self.assertEqual(entry["tags"], ["a", "b"])
        self.assertEqual(rebuilt["name"], "Team")
        self.assertEqual(rebuilt["version"], "2.0.0")

    def test_build_manifest_rejects_bad_version(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            init_catalog(root, "x")
            with self.assertRaises(ValidationError):
                build_manifest(root, catalog_id="x", version="v1")


if __name__ == "__main__":
    unittest.main()
