# Infrastructure Study Adapters Package
from .memory import InMemoryStudyRepository
from .postgrest import PostgrestStudyRepository
from .yaml_store import YamlStudyRepository

__all__ = ["InMemoryStudyRepository", "PostgrestStudyRepository", "YamlStudyRepository"]
