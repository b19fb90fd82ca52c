"""Progress model: one row per (learner, trainer). Holds the archetype-shaped mastery record."""
from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from mathtrainer.db.session import Base


class TrainerProgress(Base):
    __tablename__ = "trainer_progress"
    __table_args__ = (
        UniqueConstraint("learner_id", "trainer_id", name="uq_trainer_progress_learner_trainer"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(String(64), nullable=False, index=True)
    trainer_id = Column(String(128), nullable=False)
    # JSON object, e.g. {"accuracy": true, "speed": false, "raceStars": 1}
    progress_json = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True
    )
