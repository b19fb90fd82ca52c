"""SQLAlchemy declarative base and model imports for Alembic."""
from mathtrainer.db.session import Base

# Import all models so Alembic can see them
from mathtrainer.models.achievement import UserAchievement  # noqa: F401
from mathtrainer.models.attempt import TrainerAttempt  # noqa: F401
from mathtrainer.models.progress import TrainerProgress  # noqa: F401
from mathtrainer.models.stats import UserStats  # noqa: F401

__all__ = ["Base", "TrainerProgress", "TrainerAttempt", "UserStats", "UserAchievement"]
