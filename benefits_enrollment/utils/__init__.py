"""
Utility modules for the enrollment service
"""
from .config_loader import RatingConfig, load_rating_config
from .rate_limiter import RateLimiter

__all__ = [
    'RatingConfig',
    'load_rating_config',
    'RateLimiter',
]
