from fastapi import APIRouter

from quickvibe.api.routes import agent, agents, collab, discover, login, projects, users, utils, workflows

api_router = APIRouter()
api_router.include_router(login.router)
api_router.include_router(users.router)
api_router.include_router(utils.router)
api_router.include_router(projects.router, prefix="/projects", tags=["projects"])
api_router.include_router(collab.router, prefix="/collab", tags=["collab"])
api_router.include_router(discover.router, prefix="/discover", tags=["discover"])
api_router.include_router(agent.router, prefix="/agent", tags=["agent"])
api_router.include_router(agents.router, prefix="/agents", tags=["agents"])
api_router.include_router(workflows.router, prefix="/workflows", tags=["workflows"])
