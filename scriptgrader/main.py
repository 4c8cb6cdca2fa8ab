# scriptgrader/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from scriptgrader.core.config import settings
from scriptgrader.core.logging_config import setup_logging
from scriptgrader.db.init_db import init_db
from scriptgrader.api.v1.endpoints import assessments, submissions, scores, health

setup_logging(settings.LOG_LEVEL)

app = FastAPI(title=settings.PROJECT_NAME)

origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    init_db()


app.include_router(health.router, prefix="/api/v1/health")
app.include_router(assessments.router, prefix="/api/v1")
app.include_router(submissions.router, prefix="/api/v1")
app.include_router(scores.router, prefix="/api/v1")

# 上传的答题纸图片，URL 形如 /uploads/<file>
app.mount(
    settings.UPLOAD_URL_PREFIX,
    StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False),
    name="uploads",
)
