"""
Pytest configuration and fixtures for NoteVault tests.
"""

import pytest
from pathlib import Path


@pytest.fixture
def temp_vault(tmp_path: Path):
    """Create an empty temporary vault directory."""
    vault_path = tmp_path / "vault"
    vault_path.mkdir()
    yield vault_path


@pytest.fixture
def settings(temp_vault, tmp_path):
    """Settings pointing at the temporary vault, ignoring any .env file."""
    from notevault.config import Settings

    return Settings(
        _env_file=None,
        vault_path=temp_vault,
        notes_subfolder="NoteVault",
        data_dir=tmp_path / "data",
        storage_backend="vault",
        auto_sync_on_save=False,
        default_branch="main",
        remote_name="origin",
    )


@pytest.fixture
def vault_store(settings):
    """VaultStore on the temporary vault."""
    from notevault.vault import VaultStore
    return VaultStore.from_settings(settings)


@pytest.fixture
def json_store(tmp_path):
    """JsonNoteStore in a temporary data directory."""
    from notevault.json_store import JsonNoteStore
    return JsonNoteStore(tmp_path / "data")


@pytest.fixture
def make_note():
    """Factory for notes with predictable ids and timestamps.

    The n-th note gets id note-100n and a timestamp n hours after midnight.
    """
    from notevault.models import Note

    counter = {"n": 0}

    def _make(title: str, content: str = "", tags=None, project=None, category=None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        data = {
            "id": f"note-{1000 + n}",
            "title": title,
            "content": content,
            "timestamp": f"2024-06-10T{n:02d}:00:00.000Z",
            "tags": tags or [],
            "project": project,
            "category": category,
        }
        data.update(overrides)
        return Note(**data)

    return _make


@pytest.fixture
def sample_notes(make_note):
    """Three related notes, oldest first."""
    return [
        make_note(
            "Release Plan",
            "Milestones for the third quarter release.",
            tags=["infra", "q3"],
            project="platform",
        ),
        make_note(
            "Infra Budget",
            "Hardware and cloud costs for the year.",
            tags=["infra", "finance"],
        ),
        make_note(
            "Team Offsite",
            "Agenda and travel for the offsite meeting.",
            tags=["people"],
            category="meeting",
        ),
    ]


@pytest.fixture
def git_runner():
    """Scripted git runner for a healthy repository."""
    from tests.fakes import FakeGitRunner
    return FakeGitRunner.healthy()


@pytest.fixture
def git_repo(settings, git_runner):
    """GitRepository driven by the fake runner."""
    from notevault.git import GitRepository
    return GitRepository.from_settings(settings, git_runner)


@pytest.fixture
def orchestrator(settings, vault_store, git_repo):
    """SyncOrchestrator over the temporary vault and the fake runner."""
    from notevault.sync import SyncOrchestrator
    return SyncOrchestrator(settings, vault_store, git_repo)


@pytest.fixture
def handlers(settings, vault_store, git_runner):
    """Tool handlers over the temporary vault and the fake runner."""
    from notevault.handlers import NoteHandlers
    return NoteHandlers(settings, store=vault_store, git_runner=git_runner)


@pytest.fixture
async def stored_notes(vault_store, sample_notes):
    """The sample notes written to the temporary vault."""
    for note in sample_notes:
        await vault_store.put(note)
    return sample_notes
