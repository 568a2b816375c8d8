from .base import BaseSeeder
from .registry import SeederRegistry

# Importing the sub-modules registers their seeders; priority decides the order.
from .core import roles
