"""Tests for the generational auto-save service."""

import asyncio
import json
import shutil
from unittest.mock import patch

import pytest

from surveykit.config.settings import AutoSaveConfig
from surveykit.exceptions import BackupIOError
from surveykit.services.autosave import AutoSaveService, _snapshot_lock


@pytest.fixture
def project(project_dir):
    (project_dir / "project.json").write_text(json.dumps({"name": "Site A"}))
    (project_dir / "placements.json").write_text("[]")
    return project_dir


class TestConstruction:
    """Tests for AutoSaveService setup."""

    def test_defaults(self):
        service = AutoSaveService()

        assert service.interval == 120
        assert service.max_backup_generations == 5
        assert "project.json" in service.backup_files
        assert not service.is_running
        assert not service.is_dirty

    @pytest.mark.parametrize(
        "kwargs",
        [{"interval": 0}, {"interval": -1}, {"max_backup_generations": 0}],
    )
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            AutoSaveService(**kwargs)

    def test_from_config(self):
        config = AutoSaveConfig(interval_seconds=30, max_backup_generations=2, backup_files=["a.json"])

        service = AutoSaveService.from_config(config)

        assert service.interval == 30
        assert service.max_backup_generations == 2
        assert service.backup_files == ("a.json",)


class TestDirtyTracking:
    """Tests for dirty and clean bookkeeping."""

    def test_mark_dirty_and_clean(self):
        service = AutoSaveService()

        service.mark_dirty()
        assert service.is_dirty

        service.mark_clean()
        assert not service.is_dirty


class TestCreateBackup:
    """Tests for AutoSaveService.create_backup."""

    async def test_copies_existing_files(self, project):
        backup = await AutoSaveService().create_backup(project)

        assert backup is not None
        assert backup.parent == project / "backups"
        assert json.loads((backup / "project.json").read_text()) == {"name": "Site A"}
        assert (backup / "placements.json").is_file()
        assert not (backup / "measurements.json").exists()

    async def test_generation_names_sort_by_time(self, project):
        service = AutoSaveService()

        first = await service.create_backup(project)
        second = await service.create_backup(project)

        assert first.name < second.name

    async def test_keeps_newest_generations(self, project):
        service = AutoSaveService(max_backup_generations=3)
        created = [await service.create_backup(project) for _ in range(5)]

        backups = await service.list_backups(project)

        assert backups == list(reversed(created[-3:]))
        assert not created[0].exists()
        assert not created[1].exists()

    async def test_skips_while_snapshot_in_progress(self, project):
        lock = _snapshot_lock(project)
        lock.acquire()
        try:
            assert await AutoSaveService().create_backup(project) is None
        finally:
            lock.release()

        assert not (project / "backups").exists() or not any((project / "backups").iterdir())

    async def test_copy_failure_raises(self, project):
        with patch("surveykit.services.autosave.shutil.copy2", side_effect=OSError("disk full")):
            with pytest.raises(BackupIOError):
                await AutoSaveService().create_backup(project)

        assert list((project / "backups").iterdir()) == []

    async def test_failed_snapshot_leaves_previous_generation_newest(self, project):
        service = AutoSaveService()
        good = await service.create_backup(project)
        real_copy2 = shutil.copy2
        calls = []

        def copy_then_fail(source, target):
            calls.append(source)
            if len(calls) == 2:
                raise OSError("disk full")
            return real_copy2(source, target)

        (project / "project.json").write_text(json.dumps({"name": "Site B"}))
        with patch("surveykit.services.autosave.shutil.copy2", side_effect=copy_then_fail):
            with pytest.raises(BackupIOError):
                await service.create_backup(project)

        assert await service.list_backups(project) == [good]
        assert [entry.name for entry in (project / "backups").iterdir()] == [good.name]

        assert await service.recover_from_backup(project) is True
        assert json.loads((project / "project.json").read_text()) == {"name": "Site A"}

    async def test_leftover_staging_dirs_are_not_generations(self, project):
        service = AutoSaveService()
        leftover = project / "backups" / ".2026-01-01T00-00-00.000000.partial"
        leftover.mkdir(parents=True)
        (leftover / "project.json").write_text("{}")

        assert await service.list_backups(project) == []
        assert await service.recover_from_backup(project) is False

        backup = await service.create_backup(project)

        assert await service.list_backups(project) == [backup]
        assert not leftover.exists()

    async def test_prune_failure_is_logged(self, project):
        service = AutoSaveService(max_backup_generations=1)
        await service.create_backup(project)

        with patch("surveykit.services.autosave.shutil.rmtree", side_effect=OSError("busy")):
            backup = await service.create_backup(project)

        assert backup is not None
        assert len(await service.list_backups(project)) == 2

    async def test_list_backups_without_directory(self, project):
        assert await AutoSaveService().list_backups(project) == []


class TestTick:
    """Tests for AutoSaveService.tick."""

    async def test_no_project(self):
        service = AutoSaveService()
        service.mark_dirty()

        assert await service.tick() is None

    async def test_clean_project_is_skipped(self, project):
        service = AutoSaveService()
        service.start(project)
        try:
            assert await service.tick() is None
            assert not (project / "backups").exists()
        finally:
            await service.stop()

    async def test_dirty_then_tick(self, project):
        service = AutoSaveService(max_backup_generations=3)
        service.start(project)
        try:
            for _ in range(5):
                service.mark_dirty()
                assert await service.tick() is not None
                assert not service.is_dirty
        finally:
            await service.stop()

        assert len(await service.list_backups(project)) == 3

    async def test_failure_keeps_dirty(self, project):
        service = AutoSaveService()
        service.start(project)
        service.mark_dirty()
        try:
            with patch.object(
                service, "create_backup", side_effect=BackupIOError(project, "read-only")
            ):
                assert await service.tick() is None
            assert service.is_dirty
        finally:
            await service.stop()

    async def test_edits_during_snapshot_stay_pending(self, project):
        service = AutoSaveService()
        create_backup = service.create_backup

        async def edit_while_saving(path):
            service.mark_dirty()
            return await create_backup(path)

        service.start(project)
        service.mark_dirty()
        try:
            with patch.object(service, "create_backup", side_effect=edit_while_saving):
                assert await service.tick() is not None
            assert service.is_dirty
        finally:
            await service.stop()


class TestTimer:
    """Tests for start and stop."""

    async def test_timer_writes_backups(self, project):
        service = AutoSaveService(interval=0.05)
        service.mark_dirty()
        service.start(project)
        assert service.is_running
        assert service.project_path == project

        for _ in range(100):
            if await service.list_backups(project):
                break
            await asyncio.sleep(0.02)

        await service.stop()

        assert len(await service.list_backups(project)) >= 1
        assert not service.is_running
        assert service.project_path is None

    async def test_stop_without_start(self):
        await AutoSaveService().stop()


class TestRecover:
    """Tests for AutoSaveService.recover_from_backup."""

    async def test_restores_latest_generation(self, project):
        service = AutoSaveService()
        await service.create_backup(project)
        (project / "project.json").write_text(json.dumps({"name": "Site B"}))
        await service.create_backup(project)
        (project / "project.json").write_text("corrupted")

        assert await service.recover_from_backup(project) is True
        assert json.loads((project / "project.json").read_text()) == {"name": "Site B"}

    async def test_no_backup(self, project):
        assert await AutoSaveService().recover_from_backup(project) is False
        assert (project / "project.json").read_text() == json.dumps({"name": "Site A"})
