from .greetings import GreetingsRepository
from . import models

__all__ = ["GreetingsRepository", "models"]
