"""Tests for the download and install drivers."""

from pathlib import Path
from unittest.mock import patch

import pytest

from game_library.models import (
    DownloadProgress,
    FileCategory,
    FileRecord,
    GameRecord,
    RepositoryConfig,
    VersionRecord,
)
from game_library.services.errors import InstallError
from game_library.services.installer import INSTALL_MARKER, InstallerService
from game_library.services.repository import RepositorySource, scan


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    game_dir = root / "hades"
    game_dir.mkdir(parents=True)
    (game_dir / "setup_hades_build_100.exe").write_bytes(b"installer")
    (game_dir / "patch_build_100_to_build_200.exe").write_bytes(b"patch")
    (game_dir / "hotfix_patch.exe").write_bytes(b"hotfix")
    return root


@pytest.fixture
def game(repo: Path) -> GameRecord:
    return scan(repo)[0]


@pytest.fixture
def installer(repo: Path, tmp_path: Path) -> InstallerService:
    return InstallerService(RepositorySource.local(repo), tmp_path / "installed", tmp_path / "temp")


class TestRequiredFiles:
    def test_installers_then_ordered_patches(self, installer: InstallerService, game: GameRecord) -> None:
        version = game.latest_version()
        assert version is not None

        assert [f.name for f in installer.required_files(version)] == [
            "setup_hades_build_100.exe",
            "patch_build_100_to_build_200.exe",
            "hotfix_patch.exe",
        ]


class TestInstall:
    @pytest.mark.asyncio
    async def test_install_writes_marker_and_cleans_temp(
        self, installer: InstallerService, game: GameRecord, tmp_path: Path
    ) -> None:
        version = game.latest_version()
        assert version is not None

        install_dir = await installer.install_version(game, version)

        assert install_dir == tmp_path / "installed" / "hades"
        marker = (install_dir / INSTALL_MARKER).read_text(encoding="utf-8")
        assert "Game: Hades" in marker
        assert f"Version: {version.display_name}" in marker
        assert installer.is_installed(game)
        assert list((tmp_path / "temp").iterdir()) == []

    @pytest.mark.asyncio
    async def test_progress_reported_per_file(self, installer: InstallerService, game: GameRecord) -> None:
        version = game.latest_version()
        assert version is not None
        updates: list[DownloadProgress] = []

        await installer.install_version(game, version, progress_callback=updates.append)

        assert [u.files_completed for u in updates] == [1, 2, 3]
        assert all(u.total_files == 3 for u in updates)
        assert updates[-1].bytes_downloaded == updates[-1].total_bytes == len(b"installer" + b"patch" + b"hotfix")
        assert updates[0].current_file == "setup_hades_build_100.exe"

    @pytest.mark.asyncio
    async def test_missing_file_raises_and_cleans_up(
        self, installer: InstallerService, game: GameRecord, repo: Path, tmp_path: Path
    ) -> None:
        version = game.latest_version()
        assert version is not None
        (repo / "hades" / "hotfix_patch.exe").unlink()

        with pytest.raises(InstallError) as exc_info:
            await installer.install_version(game, version)

        assert "hotfix_patch.exe" in (exc_info.value.technical_details or "")
        assert list((tmp_path / "temp").iterdir()) == []
        assert not installer.is_installed(game)

    @pytest.mark.asyncio
    async def test_same_file_name_in_different_directories(self, repo: Path, tmp_path: Path) -> None:
        (repo / "hades" / "x64").mkdir()
        (repo / "hades" / "x86").mkdir()
        (repo / "hades" / "x64" / "setup.exe").write_bytes(b"64-bit")
        (repo / "hades" / "x86" / "setup.exe").write_bytes(b"32-bit")
        installer = InstallerService(RepositorySource.local(repo), tmp_path / "installed", tmp_path / "temp")
        files = [
            FileRecord("setup.exe", "hades/x64/setup.exe", 6, FileCategory.INSTALLER),
            FileRecord("setup.exe", "hades/x86/setup.exe", 6, FileCategory.INSTALLER),
        ]

        paths = await installer.download_files(files)

        assert len(set(paths)) == 2
        assert [p.read_bytes() for p in paths] == [b"64-bit", b"32-bit"]

        installer.cleanup(paths)
        assert list((tmp_path / "temp").iterdir()) == []

    @pytest.mark.asyncio
    async def test_not_enough_space(self, installer: InstallerService) -> None:
        files = [FileRecord("big.exe", "hades/big.exe", 10**6, FileCategory.INSTALLER)]

        with patch.object(installer._fs, "get_available_space", return_value=10):
            with pytest.raises(InstallError, match="Not enough free space"):
                await installer.download_files(files)

    @pytest.mark.asyncio
    async def test_simulated_repository_install(self, tmp_path: Path) -> None:
        source = RepositorySource(RepositoryConfig(server="nas.local"))
        source.connect()
        installer = InstallerService(source, tmp_path / "installed", tmp_path / "temp")
        record = FileRecord("setup.exe", "demo/setup.exe", 0, FileCategory.INSTALLER)
        game = GameRecord(id="demo", title="Demo", versions=[VersionRecord("Default Version", 1, [record])])

        await installer.install_version(game, game.versions[0])

        assert installer.is_installed(game)


class TestUninstall:
    @pytest.mark.asyncio
    async def test_uninstall_removes_directory(self, installer: InstallerService, game: GameRecord) -> None:
        version = game.latest_version()
        assert version is not None
        install_dir = await installer.install_version(game, version)

        installer.uninstall(game)

        assert not install_dir.exists()
        assert not installer.is_installed(game)

    def test_uninstall_when_not_installed(self, installer: InstallerService, game: GameRecord) -> None:
        with pytest.raises(InstallError, match="not installed"):
            installer.uninstall(game)

    def test_cleanup_ignores_missing_files(self, installer: InstallerService, tmp_path: Path) -> None:
        existing = tmp_path / "leftover.exe"
        existing.write_bytes(b"x")

        installer.cleanup([existing, tmp_path / "gone.exe"])

        assert not existing.exists()
