"""
Utility functions
"""
from .datetime_utils import utcnow, to_datetime
from .id_generator import generate_backlink_id

__all__ = ['utcnow', 'to_datetime', 'generate_backlink_id']
