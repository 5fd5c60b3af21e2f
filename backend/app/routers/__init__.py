# API Routers
from app.routers import tasks

__all__ = ['tasks']
