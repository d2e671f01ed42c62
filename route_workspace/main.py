import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from route_workspace import __version__
from route_workspace.api.workspace import router as workspace_router
from route_workspace.config import config

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Route Workspace", version=__version__)

# Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(workspace_router)


@app.get("/")
def read_root():
    return {"message": "Welcome to Route Workspace API", "version": __version__}
