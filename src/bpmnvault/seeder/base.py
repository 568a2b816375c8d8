from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
import logging

logger = logging.getLogger(__name__)

class BaseSeeder(ABC):
    """
    Abstract base class for all data seeders.

    Attributes:
        priority (int): Execution order priority (lower runs first).
                        Roles use 0-20, hierarchy edges 20-40,
                        users 40+ (they reference roles).
    """
    priority: int = 100

    def __init__(self, session: Session, options: Optional[Dict[str, Any]] = None):
        self.session = session
        self.options = options or {}

    @abstractmethod
    def run(self):
        """Execute the seeding logic."""
        pass

    def log(self, message: str):
        """Helper to log seeding progress."""
        logger.info(f"[{self.__class__.__name__}] {message}")
