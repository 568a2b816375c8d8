import logging
from typing import Any, Dict, List, Optional, Type
from sqlalchemy.orm import Session

from .base import BaseSeeder

logger = logging.getLogger(__name__)

class SeederRegistry:
    """Registry to manage and execute registered seeders."""

    _seeders: List[Type[BaseSeeder]] = []

    @classmethod
    def register(cls, seeder_cls: Type[BaseSeeder]):
        """Decorator to register a seeder class."""
        if seeder_cls not in cls._seeders:
            cls._seeders.append(seeder_cls)
        return seeder_cls

    @classmethod
    def seeders(cls) -> List[Type[BaseSeeder]]:
        return sorted(cls._seeders, key=lambda x: x.priority)

    @classmethod
    def run_all(cls, session: Session, options: Optional[Dict[str, Any]] = None):
        """Run all registered seeders in priority order, committing after each."""
        sorted_seeders = cls.seeders()

        total = len(sorted_seeders)
        logger.info(f"Starting seeding process. {total} seeders registered.")

        for index, seeder_cls in enumerate(sorted_seeders, 1):
            seeder = seeder_cls(session, options)
            try:
                seeder.log(f"Running ({index}/{total})...")
                seeder.run()
                session.commit()
                seeder.log("Completed.")
            except Exception as e:
                session.rollback()
                logger.error(f"Seeder {seeder_cls.__name__} failed: {e}")
                raise
