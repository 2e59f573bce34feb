"""
Study Repository Factory
Centralizes the logic for selecting the appropriate persistence adapter.
"""

import logging

from gelos.application.config import AppConfig
from gelos.domain.study.ports import StudyRepository
from gelos.infrastructure.adapters.study import (
    InMemoryStudyRepository,
    PostgrestStudyRepository,
    YamlStudyRepository,
)

logger = logging.getLogger(__name__)


def get_study_repository(config: AppConfig) -> StudyRepository:
    """
    Returns the appropriate StudyRepository implementation based on config.
    """
    # 1. Manual selection
    if config.backend == "memory":
        return InMemoryStudyRepository()

    if config.backend == "yaml":
        return YamlStudyRepository(deck_dir=config.deck_dir)

    if config.backend == "postgrest":
        if not config.postgrest_url:
            raise ValueError("backend 'postgrest' requires postgrest_url (GELOS_POSTGREST_URL)")
        return PostgrestStudyRepository(
            url=config.postgrest_url,
            api_key=config.postgrest_key,
            learner_id=config.learner_id,
        )

    # 2. Auto selection: prefer the hosted backend when configured
    if config.postgrest_url:
        logger.info(f"Backend: PostgREST ({config.postgrest_url})")
        return PostgrestStudyRepository(
            url=config.postgrest_url,
            api_key=config.postgrest_key,
            learner_id=config.learner_id,
        )

    logger.info(f"Backend: YAML decks in {config.deck_dir}")
    return YamlStudyRepository(deck_dir=config.deck_dir)
