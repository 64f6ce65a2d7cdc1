from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from dodgeboard.api.dependencies import (
    get_admin_code,
    get_container,
    get_fingerprint,
    require_admin,
)
from dodgeboard.api.schemas import (
    FlagReportRequest,
    ProfileSaveRequest,
    RewardCheckRequest,
    RewardTierCreateRequest,
    RewardTierUpdateRequest,
    ScoreSubmissionRequest,
)
from dodgeboard.core.logging.logger import set_log_context
from dodgeboard.core.services.container import ServiceContainer
from dodgeboard.database.models import RewardTier
from dodgeboard.modules.admin import AdminService
from dodgeboard.modules.profile import ProfileView

router = APIRouter(prefix="/api")

TIME_VIOLATION_MESSAGE = "Invalid score: completion time too short for victory"


def _tier_payload(tier: RewardTier) -> Dict[str, Any]:
    return {
        "id": tier.id,
        "threshold": tier.threshold_value,
        "message": tier.message,
        "code": tier.secret_code,
        "active": tier.active,
        "singleClaimPerPlayer": tier.single_claim_per_player,
        "createdAt": tier.created_at,
    }


def _profile_payload(view: Optional[ProfileView]) -> Optional[Dict[str, Any]]:
    if view is None:
        return None
    return {
        "playerId": view.player_id,
        "username": view.display_name,
        "discord": view.tag,
        "bestScore": view.best_score,
        "lastUpdated": view.updated_at,
    }


# ============================================================================
# Scores & leaderboards
# ============================================================================


@router.post("/score")
async def submit_score(
    req: ScoreSubmissionRequest,
    fingerprint: str = Depends(get_fingerprint),
    container: ServiceContainer = Depends(get_container),
):
    set_log_context(player_id=req.player_id if isinstance(req.player_id, str) else None)
    result = await container.submission.submit(
        display_name=req.username,
        tag=req.discord,
        value=req.score,
        player_id=req.player_id,
        is_victory=req.is_victory,
        fingerprint=fingerprint,
    )
    if not result.accepted:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": TIME_VIOLATION_MESSAGE, "flagged": result.flagged},
        )
    return {"success": True, "message": "Score submitted!", **result.to_dict()}


@router.get("/leaderboard/daily")
async def daily_leaderboard(container: ServiceContainer = Depends(get_container)):
    entries = await container.leaderboard.daily()
    return {"success": True, "leaderboard": [entry.to_dict() for entry in entries]}


@router.get("/leaderboard/all-time")
async def all_time_leaderboard(container: ServiceContainer = Depends(get_container)):
    entries = await container.leaderboard.all_time()
    return {"success": True, "leaderboard": [entry.to_dict() for entry in entries]}


@router.get("/stats")
async def stats(container: ServiceContainer = Depends(get_container)):
    summary = await container.leaderboard.stats()
    return {
        "success": True,
        "dailyPlayers": summary["daily_players"],
        "totalGames": summary["total_games"],
    }


@router.get("/health")
async def health(container: ServiceContainer = Depends(get_container)):
    report = await container.health_check()
    status_code = 200 if report["database"] else 503
    return JSONResponse(
        status_code=status_code,
        content={"success": bool(report["database"]), "database": report["database"], "redis": report["redis"]},
    )


# ============================================================================
# Rewards, profiles, flags
# ============================================================================


@router.post("/reward/check")
async def check_reward(
    req: RewardCheckRequest,
    container: ServiceContainer = Depends(get_container),
):
    result = await container.rewards.check_and_claim(req.player_id, req.score)
    body: Dict[str, Any] = {"success": True, "earned": result.earned}
    if result.earned and result.reward is not None:
        body["reward"] = result.reward.to_dict()
    return body


@router.get("/user/profile")
async def get_profile(
    player_id: Optional[str] = Query(None, alias="playerId"),
    container: ServiceContainer = Depends(get_container),
):
    view = await container.profiles.get(player_id)
    return {"success": True, "profile": _profile_payload(view)}


@router.post("/user/profile")
async def save_profile(
    req: ProfileSaveRequest,
    container: ServiceContainer = Depends(get_container),
):
    view = await container.profiles.save(req.player_id, req.username, req.discord)
    return {"success": True, "message": "Profile saved", "profile": _profile_payload(view)}


@router.get("/user/best-score")
async def best_score(
    username: Optional[str] = None,
    container: ServiceContainer = Depends(get_container),
):
    return {"success": True, "bestScore": await container.leaderboard.best_score(username)}


@router.post("/flag")
async def report_flag(
    req: FlagReportRequest,
    fingerprint: str = Depends(get_fingerprint),
    container: ServiceContainer = Depends(get_container),
):
    await container.flags.record_flag(fingerprint, req.reason)
    return {"success": True, "message": "Flag recorded"}


# ============================================================================
# Admin
# ============================================================================


@router.post("/admin/validate")
async def validate_admin(
    code: Optional[str] = Depends(get_admin_code),
    container: ServiceContainer = Depends(get_container),
):
    return {"valid": container.admin.validate(code)}


@router.get("/admin/scores")
async def admin_scores(admin: AdminService = Depends(require_admin("list_scores"))):
    return {"success": True, "scores": await admin.list_scores()}


@router.delete("/admin/score/{score_id}")
async def admin_delete_score(
    score_id: int,
    admin: AdminService = Depends(require_admin("delete_score")),
):
    await admin.delete_score(score_id)
    return {"success": True, "message": "Score deleted successfully"}


@router.delete("/admin/scores/clear-daily")
async def admin_clear_daily(admin: AdminService = Depends(require_admin("clear_daily"))):
    await admin.clear_daily()
    return {"success": True, "message": "Daily leaderboard cleared"}


@router.get("/admin/flags")
async def admin_flags(admin: AdminService = Depends(require_admin("list_flags"))):
    return {"success": True, "flaggedPlayers": await admin.list_flags()}


@router.delete("/admin/flag/{fingerprint}")
async def admin_clear_flags(
    fingerprint: str,
    admin: AdminService = Depends(require_admin("clear_flags")),
):
    cleared = await admin.clear_flags(fingerprint)
    return {
        "success": True,
        "message": "Flags cleared",
        "flagsDeleted": cleared["flags_deleted"],
        "scoresUnflagged": cleared["scores_unflagged"],
    }


@router.get("/admin/rewards")
async def admin_list_rewards(admin: AdminService = Depends(require_admin("list_rewards"))):
    tiers = await admin.list_tiers()
    return {"success": True, "rewards": [_tier_payload(tier) for tier in tiers]}


@router.post("/admin/rewards")
async def admin_create_reward(
    req: RewardTierCreateRequest,
    admin: AdminService = Depends(require_admin("create_reward")),
):
    tier = await admin.create_tier(
        threshold_value=req.threshold,
        message=req.message,
        secret_code=req.secret_code,
        active=req.active,
        single_claim_per_player=req.single_claim_per_player,
    )
    return {"success": True, "reward": _tier_payload(tier)}


@router.patch("/admin/rewards/{tier_id}")
async def admin_update_reward(
    tier_id: int,
    req: RewardTierUpdateRequest,
    admin: AdminService = Depends(require_admin("update_reward")),
):
    tier = await admin.update_tier(tier_id, req.changes())
    return {"success": True, "reward": _tier_payload(tier)}


@router.delete("/admin/rewards/{tier_id}")
async def admin_delete_reward(
    tier_id: int,
    admin: AdminService = Depends(require_admin("delete_reward")),
):
    await admin.delete_tier(tier_id)
    return {"success": True, "message": "Reward deleted"}


@router.delete("/admin/rewards/{tier_id}/claims")
async def admin_reset_claims(
    tier_id: int,
    admin: AdminService = Depends(require_admin("reset_claims")),
):
    removed = await admin.reset_claims(tier_id)
    return {"success": True, "claimsRemoved": removed}
