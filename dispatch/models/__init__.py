"""Database models for the dispatch application."""

from .user import User
from .task import Task

__all__ = ['User', 'Task']
