from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from internhub.core.config import settings
from internhub.core.database import db
from internhub.core.errors import register_error_handlers
import asyncio
import logging

# Import Routers
from internhub.routers import (
    dashboard,
    students,
    batches,
    projects,
    leaves,
    queries,
    profile,
    faculty,
    diary,
)

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, db.connect)
        yield
    finally:
        await loop.run_in_executor(None, db.close)

app = FastAPI(title="InternHub API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


@app.get("/")
def read_root():
    return {"message": "InternHub Backend is Running"}

# Register Routers
app.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
app.include_router(students.router, prefix="/students", tags=["Students"])
app.include_router(batches.router, prefix="/batches", tags=["Batches"])
app.include_router(projects.router, prefix="/projects", tags=["Projects"])
app.include_router(leaves.router, prefix="/leaves", tags=["Leaves"])
app.include_router(queries.router, prefix="/queries", tags=["Queries"])
app.include_router(profile.router, prefix="/profile", tags=["Profile"])
app.include_router(faculty.router, prefix="/faculty", tags=["Faculty"])
app.include_router(diary.router, prefix="/diary", tags=["Diary"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("internhub.main:app", host="0.0.0.0", port=8000)
