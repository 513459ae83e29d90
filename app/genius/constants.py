"""
Central constants for the Template Genius dashboard.
"""
from __future__ import annotations

import re

# Client access tokens: "G" + 4 digits, e.g. G1001
TOKEN_PREFIX = "G"
TOKEN_DIGITS = 4
TOKEN_PATTERN = re.compile(r"^G\d{4}$")

CLIENT_STATUSES = ("pending", "activated")

# Journey pages, in journey order
PAGE_TYPES = ("activation", "agreement", "confirmation", "processing")
PAGE_ORDER = {page_type: i + 1 for i, page_type in enumerate(PAGE_TYPES)}
PAGE_LABELS = {
    "activation": "Activation",
    "agreement": "Agreement",
    "confirmation": "Confirmation",
    "processing": "Processing",
}

PAGE_STATUSES = ("pending", "active", "completed", "skipped")
PAGE_STATUS_TRANSITIONS = {
    "pending": {"active", "skipped"},
    "active": {"completed", "skipped", "pending"},
    "completed": {"active"},
    "skipped": {"pending", "active"},
}

CHANGE_TYPES = ("content", "title", "both", "structure")
HYPOTHESIS_STATUSES = ("active", "validated", "invalidated", "cancelled")

OUTCOMES = ("pending", "paid", "ghosted", "negotiating", "declined")
# Outcomes that close a journey; conversion rate = paid / decided
DECIDED_OUTCOMES = ("paid", "ghosted", "declined")
HYPOTHESIS_ACCURACY = ("accurate", "partially_accurate", "inaccurate", "unknown")
LEARNING_PRIORITIES = ("low", "medium", "high")
