from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict:
    agent = getattr(request.app.state, "optimization_agent", None)
    return {
        "status": "ok",
        "agent": agent.get_status() if agent is not None else "unavailable",
    }
