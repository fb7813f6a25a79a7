"""Cinema platform data-access core."""

from cinema.data_access import DataAccess, create_data_access

__all__ = ["DataAccess", "create_data_access"]
