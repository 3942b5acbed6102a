from postlift.stores.base import ExperimentStore
from postlift.stores.memory import InMemoryExperimentStore
from postlift.stores.sql import SqlExperimentStore

__all__ = ["ExperimentStore", "InMemoryExperimentStore", "SqlExperimentStore"]
