from core.queries.service import QueryLayer, Page
from core.queries.reviews import ReviewStatsClient

__all__ = [
    'QueryLayer',
    'Page',
    'ReviewStatsClient',
]
