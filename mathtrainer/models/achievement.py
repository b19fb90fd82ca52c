"""UserAchievement model: per-learner state of one catalog achievement."""
from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from mathtrainer.db.session import Base


class UserAchievement(Base):
    __tablename__ = "user_achievements"
    __table_args__ = (
        UniqueConstraint("learner_id", "achievement_id", name="uq_user_achievements_learner_achievement"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False, index=True)
    achievement_id = Column(String(64), nullable=False)
    progress = Column(Integer, nullable=False, default=0)
    unlocked_at = Column(DateTime(timezone=True), nullable=True)  # set once, never cleared
