import tempfile
import unittest
from pathlib import Path

from agentsync.errors import ValidationError
from agentsync.validation import (
    to_skill_name,
    validate_catalog_not_registered,
    validate_front_matter,
    validate_path_exists,
    validate_skill_description,
    validate_skill_name,
    validate_skills_directory,
)


class TestSkillName(unittest.TestCase):
    def test_accepts_kebab_case(self) -> None:
        for name in ("a", "my-skill", "skill2", "a1-b2-c3"):
            self.assertEqual(validate_skill_name(name), name)

    def test_rejects_bad_names(self) -> None:
        for name in ("", "My-Skill", "my--skill", "-skill", "skill-", "my_skill", "a" * 65, None):
            with self.subTest(name=name):
                with self.assertRaises(ValidationError):
                    validate_skill_name(name)

    def test_max_length_is_accepted(self) -> None:
        self.assertEqual(validate_skill_name("a" * 64), "a" * 64)

    def test_to_skill_name(self) -> None:
        self.assertEqual(to_skill_name("  My Cool_Skill!! "), "my-cool-skill")


class TestDescription(unittest.TestCase):
    def test_bounds(self) -> None:
        self.assertEqual(validate_skill_description("x"), "x")
        self.assertEqual(len(validate_skill_description("x" * 1024)), 1024)
        with self.assertRaises(ValidationError):
            validate_skill_description("")
        with self.assertRaises(ValidationError):
            validate_skill_description("x" * 1025)


class TestFrontMatterFields(unittest.TestCase):
    def test_requires_name_and_description(self) -> None:
        self.assertEqual(validate_front_matter({"name": "a", "description": "b"}), ("a", "b"))
        with self.assertRaises(ValidationError):
            validate_front_matter({"description": "b"})
        with self.assertRaises(ValidationError):
            validate_front_matter({"name": "a"})
        with self.assertRaises(ValidationError):
            validate_front_matter({"name": "Bad Name", "description": "b"})


class TestPathChecks(unittest.TestCase):
    def test_path_and_skills_directory(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            validate_path_exists(root)
            with self.assertRaises(ValidationError):
                validate_path_exists(root / "nope")
            with self.assertRaises(ValidationError):
                validate_skills_directory(root)
            (root / "skills").mkdir()
            validate_skills_directory(root)

    def test_catalog_not_registered(self) -> None:
        validate_catalog_not_registered("a", {"b": object()})
        with self.assertRaises(ValidationError):
            validate_catalog_not_registered("a", {"a": object()})


if __name__ == "__main__":
    unittest.main()
