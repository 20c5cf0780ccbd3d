from fastapi import APIRouter
from cutroom.modules.projects.router import router as projects_router
from cutroom.modules.media.router import router as media_router
from cutroom.modules.folders.router import router as folders_router
from cutroom.modules.review_links.router import router as links_router, public_router as review_router
from cutroom.modules.rounds.router import router as rounds_router
from cutroom.modules.comments.router import router as comments_router, public_router as review_comments_router

api_router = APIRouter()
api_router.include_router(projects_router, prefix="/projects", tags=["projects"])
api_router.include_router(media_router, prefix="/projects/{project_id}/media", tags=["media"])
api_router.include_router(folders_router, tags=["folders"])
api_router.include_router(links_router, tags=["review-links"])
api_router.include_router(rounds_router, tags=["rounds"])
api_router.include_router(comments_router, tags=["comments"])
# unauthenticated paths addressed by review-link token
api_router.include_router(review_router, tags=["review"])
api_router.include_router(review_comments_router, tags=["review"])

@api_router.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}
