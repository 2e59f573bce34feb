import pytest

from gelos.application.config import AppConfig
from gelos.application.factory import get_study_repository
from gelos.infrastructure.adapters.study import (
    InMemoryStudyRepository,
    PostgrestStudyRepository,
    YamlStudyRepository,
)


def test_memory_backend(mock_home):
    repo = get_study_repository(AppConfig(backend="memory"))
    assert type(repo) is InMemoryStudyRepository


def test_yaml_backend(mock_home, tmp_path):
    repo = get_study_repository(AppConfig(backend="yaml", deck_dir=tmp_path))

    assert isinstance(repo, YamlStudyRepository)
    assert repo.deck_dir == tmp_path.resolve()


def test_postgrest_backend(mock_home):
    config = AppConfig(
        backend="postgrest",
        postgrest_url="https://db.example.test",
        postgrest_key="anon",
        learner_id="ana",
    )

    repo = get_study_repository(config)

    assert isinstance(repo, PostgrestStudyRepository)
    assert repo.url == "https://db.example.test"
    assert repo.api_key == "anon"
    assert repo.learner_id == "ana"


def test_postgrest_backend_requires_url(mock_home):
    with pytest.raises(ValueError, match="postgrest_url"):
        get_study_repository(AppConfig(backend="postgrest"))


def test_auto_prefers_postgrest_when_configured(mock_home):
    repo = get_study_repository(AppConfig(postgrest_url="https://db.example.test"))
    assert isinstance(repo, PostgrestStudyRepository)


def test_auto_falls_back_to_yaml(mock_home):
    repo = get_study_repository(AppConfig())
    assert isinstance(repo, YamlStudyRepository)
