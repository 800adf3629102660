"""Application queries package.

All queries are re-exported here for Neuroglia framework auto-discovery.
"""

from .get_model_status_query import GetModelStatusQuery, GetModelStatusQueryHandler

__all__ = [
    "GetModelStatusQuery",
    "GetModelStatusQueryHandler",
]
