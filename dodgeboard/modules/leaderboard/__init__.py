from dodgeboard.modules.leaderboard.service import LeaderboardService, RankedEntry

__all__ = ["LeaderboardService", "RankedEntry"]
