import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config import settings
from deps import get_github_service
from services.github_service import GitHubService, format_star_count
from utils.exceptions import AppError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def get_repo_stats(
    owner: str = settings.github_owner,
    repo: str = settings.github_repo,
    service: GitHubService = Depends(get_github_service)
):
    """Repository metadata including the star count shown in the header."""
    try:
        stats = await service.get_repo(owner, repo)
    except AppError as e:
        logger.error(f"GitHub lookup failed for {owner}/{repo}: {e.message}")
        status_code = 404 if e.status_code == 404 else 500
        return JSONResponse(status_code=status_code, content={"success": False, "error": e.message})

    data = stats.to_dict()
    data["starsFormatted"] = format_star_count(stats.stars)
    return JSONResponse(
        content={"success": True, "data": data},
        headers={"Cache-Control": "public, s-maxage=300, stale-while-revalidate=600"},
    )
