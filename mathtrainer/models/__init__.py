from mathtrainer.models.achievement import UserAchievement
from mathtrainer.models.attempt import TrainerAttempt
from mathtrainer.models.progress import TrainerProgress
from mathtrainer.models.stats import UserStats

__all__ = ["TrainerProgress", "TrainerAttempt", "UserStats", "UserAchievement"]
