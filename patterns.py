"""Centralized regex patterns for worklog sync."""

import re


class Patterns:
    """Regex patterns used throughout the sync process."""

    # OnePoint day format: DD-MM-YYYY
    WIRE_DAY = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")

    # CLI date format: YYYY-MM-DD
    DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    # Runs of whitespace inside names
    WHITESPACE = re.compile(r"\s+")
