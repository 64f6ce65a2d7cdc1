from dodgeboard.modules.rewards.service import ClaimResult, EarnedReward, RewardService

__all__ = ["ClaimResult", "EarnedReward", "RewardService"]
