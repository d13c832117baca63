"""
Rating engine: rating-area lookup, census aggregation and quote generation.

Everything in this package is pure and safe to call concurrently.
"""

from .census import aggregate, age_on
from .quote_generator import QuoteGenerator
from .rating_table import RatingTable

__all__ = ["aggregate", "age_on", "QuoteGenerator", "RatingTable"]
