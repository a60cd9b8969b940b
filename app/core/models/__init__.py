from app.core.models.class_model import TrainingClass

__all__ = [
    "TrainingClass",
]
