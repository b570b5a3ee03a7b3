"""
app/validators package marker.
"""

from app.validators.csv_validator import CSVRowValidator, RowRejectedError
from app.validators.date_range_validator import validate_date_range

__all__ = [
    "CSVRowValidator",
    "RowRejectedError",
    "validate_date_range",
]
