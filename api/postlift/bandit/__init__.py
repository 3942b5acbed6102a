from postlift.bandit.contextual import ContextualBandit
from postlift.bandit.features import extract_features
from postlift.bandit.persistence import BanditStore, InMemoryBanditStore, RedisBanditStore

__all__ = [
    "ContextualBandit",
    "extract_features",
    "BanditStore",
    "InMemoryBanditStore",
    "RedisBanditStore",
]
