from dodgeboard.modules.ranking.daily_store import DailyRankingStore
from dodgeboard.modules.ranking.repository import BoardEntry, ScoreRepository

__all__ = [
    "BoardEntry",
    "DailyRankingStore",
    "ScoreRepository",
]
