import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from agentsync.config import KIND_LOCAL, CatalogEntry, UserConfig, track_installation
from agentsync.diff import AvailableSkill, RemovedSkill
from agentsync.discovery import read_skill_file
from agentsync.installer import (
    ACTION_CREATED,
    ACTION_SKIPPED,
    ACTION_UPDATED,
    COLLISION_CATALOG,
    COLLISION_CUSTOM,
    SkillInstaller,
)


class FakePrompter:
    def __init__(self, answers: list[bool] | None = None) -> None:
        self.answers = list(answers or [])
        self.messages: list[str] = []

    def confirm(self, message: str, default: bool = True) -> bool:
        self.messages.append(message)
        return self.answers.pop(0) if self.answers else default

    def select(self, message, choices, default=None):
        self.messages.append(message)
        return default


def _available(catalog_root: Path, catalog_id: str, name: str, body: str = "# Body\n") -> AvailableSkill:
    skill_md = catalog_root / "skills" / name / "SKILL.md"
    skill_md.parent.mkdir(parents=True, exist_ok=True)
    skill_md.write_text(f"---\nname: {name}\ndescription: {name} from {catalog_id}\n---\n{body}", encoding="utf-8")
    entry = CatalogEntry(kind=KIND_LOCAL, path=str(catalog_root), priority=1)
    return AvailableSkill(catalog_id=catalog_id, entry=entry, skill=read_skill_file(skill_md))


class TestSkillInstaller(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.base = Path(self._td.name)
        self.skills_dir = self.base / "installed"
        self.cfg = UserConfig()

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_install_copies_file_and_tracks(self) -> None:
        skill = _available(self.base / "catalog-a", "catalog-a", "skill-alpha")
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=FakePrompter())

        result = installer.install(skill, self.cfg)

        target = self.skills_dir / "skill-alpha" / "SKILL.md"
        self.assertEqual(result.action, ACTION_CREATED)
        self.assertEqual(target.read_bytes(), skill.skill.source_path.read_bytes())
        self.assertEqual(self.cfg.installed["skill-alpha"].catalog, "catalog-a")

    def test_check_collision_kinds(self) -> None:
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=FakePrompter())
        self.assertIsNone(installer.check_collision("skill-alpha", self.cfg))

        (self.skills_dir / "skill-alpha").mkdir(parents=True)
        self.assertEqual(installer.check_collision("skill-alpha", self.cfg).kind, COLLISION_CUSTOM)

        track_installation(self.cfg, "skill-alpha", "catalog-a")
        collision = installer.check_collision("skill-alpha", self.cfg)
        self.assertEqual(collision.kind, COLLISION_CATALOG)
        self.assertEqual(collision.catalog_id, "catalog-a")

    def test_declined_custom_collision_changes_nothing(self) -> None:
        custom = self.skills_dir / "skill-alpha" / "SKILL.md"
        custom.parent.mkdir(parents=True)
        custom.write_text("my own skill\n", encoding="utf-8")
        skill = _available(self.base / "catalog-a", "catalog-a", "skill-alpha")
        prompter = FakePrompter([False])
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=prompter)

        result = installer.install(skill, self.cfg)

        self.assertEqual(result.action, ACTION_SKIPPED)
        self.assertIsNone(result.error)
        self.assertEqual(custom.read_text(encoding="utf-8"), "my own skill\n")
        self.assertEqual(self.cfg.installed, {})
        self.assertIn("custom skill", prompter.messages[0])

    def test_confirmed_catalog_collision_transfers_ownership(self) -> None:
        first = _available(self.base / "catalog-a", "catalog-a", "skill-alpha", body="# From A\n")
        second = _available(self.base / "catalog-b", "catalog-b", "skill-alpha", body="# From B\n")
        prompter = FakePrompter([True])
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=prompter)
        installer.install(first, self.cfg)

        result = installer.install(second, self.cfg)

        self.assertEqual(result.action, ACTION_UPDATED)
        self.assertEqual(self.cfg.installed["skill-alpha"].catalog, "catalog-b")
        installed = (self.skills_dir / "skill-alpha" / "SKILL.md").read_text(encoding="utf-8")
        self.assertIn("# From B", installed)
        self.assertIn('catalog "catalog-a"', prompter.messages[0])

    def test_force_and_skip_prompts_do_not_ask(self) -> None:
        (self.skills_dir / "skill-alpha").mkdir(parents=True)
        (self.skills_dir / "skill-beta").mkdir(parents=True)
        prompter = FakePrompter()
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=prompter)

        r1 = installer.install(_available(self.base / "c", "c", "skill-alpha"), self.cfg, force=True)
        r2 = installer.install(_available(self.base / "c", "c", "skill-beta"), self.cfg, skip_prompts=True)

        self.assertEqual([r1.action, r2.action], [ACTION_UPDATED, ACTION_UPDATED])
        self.assertEqual(prompter.messages, [])

    def test_missing_source_is_reported_not_raised(self) -> None:
        skill = _available(self.base / "catalog-a", "catalog-a", "skill-alpha")
        skill.skill.source_path.unlink()
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=FakePrompter())

        results = installer.install_batch([skill, _available(self.base / "catalog-a", "catalog-a", "skill-beta")], self.cfg)

        self.assertEqual(results[0].action, ACTION_SKIPPED)
        self.assertIsNotNone(results[0].error)
        self.assertEqual(results[1].action, ACTION_CREATED)
        self.assertEqual(list(self.cfg.installed), ["skill-beta"])

    def test_unreadable_target_is_reported_per_skill(self) -> None:
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=FakePrompter())
        first = _available(self.base / "catalog-a", "catalog-a", "skill-alpha")
        second = _available(self.base / "catalog-a", "catalog-a", "skill-beta")

        denied = PermissionError(13, "Permission denied")
        with patch.object(installer, "check_collision", side_effect=[denied, None]):
            results = installer.install_batch([first, second], self.cfg)

        self.assertEqual(results[0].action, ACTION_SKIPPED)
        self.assertIn("Permission denied", results[0].error)
        self.assertEqual(results[1].action, ACTION_CREATED)
        self.assertEqual(list(self.cfg.installed), ["skill-beta"])

    def test_remove_batch_deletes_and_untracks(self) -> None:
        skill = _available(self.base / "catalog-a", "catalog-a", "skill-alpha")
        installer = SkillInstaller(skills_dir=self.skills_dir, prompter=FakePrompter())
        installer.install(skill, self.cfg)
        track_installation(self.cfg, "ghost", "catalog-a")

        results = installer.remove_batch(
            [RemovedSkill(name="skill-alpha", catalog_id="catalog-a"), RemovedSkill(name="ghost", catalog_id="catalog-a")],
            self.cfg,
        )

        self.assertTrue(all(r.removed for r in results))
        self.assertFalse((self.skills_dir / "skill-alpha").exists())
        self.assertEqual(self.cfg.installed, {})


if __name__ == "__main__":
    unittest.main()
