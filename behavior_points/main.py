import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from behavior_points import config
from behavior_points.db import engine, Base

from behavior_points.models.user import User
from behavior_points.models.auth_session import AuthSession
from behavior_points.models.point_category import PointCategory
from behavior_points.models.points_transaction import PointsTransaction
from behavior_points.models.student_points import StudentPoints
from behavior_points.models.medal import Medal
from behavior_points.models.badge import Badge
from behavior_points.models.user_medal import UserMedal
from behavior_points.models.user_badge import UserBadge
from behavior_points.models.notification_event import NotificationEvent
from behavior_points.models.notification import Notification
from behavior_points.models.activity_log import ActivityLog
from behavior_points.models.point_transfer import PointTransfer

from behavior_points.routes.points import router as points_router
from behavior_points.routes.admin import router as admin_router
from behavior_points.routes.medals import router as medals_router
from behavior_points.routes.badges import router as badges_router
from behavior_points.routes.point_categories import router as point_categories_router
from behavior_points.routes.leaderboard import router as leaderboard_router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(title="Behavior Points Engine")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


app.include_router(points_router)
app.include_router(admin_router)
app.include_router(medals_router)
app.include_router(badges_router)
app.include_router(point_categories_router)
app.include_router(leaderboard_router)


@app.get("/")
def read_root():
    return {"message": "Behavior Points Engine is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001)
