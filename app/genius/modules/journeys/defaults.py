"""
Default page templates copied into every new client's journey.
"""
from __future__ import annotations

INITIAL_HYPOTHESIS = "Initial template content."

DEFAULT_PAGES: tuple[dict[str, object], ...] = (
    {
        "page_type": "activation",
        "page_order": 1,
        "title": "Welcome to Template Genius",
        "content": (
            "Begin your personalized template journey with us. We'll guide you through each step "
            "to create the perfect solution for your needs."
        ),
    },
    {
        "page_type": "agreement",
        "page_order": 2,
        "title": "Service Agreement",
        "content": (
            "Review and accept our service terms and your project scope. This ensures we're aligned "
            "on deliverables and expectations."
        ),
    },
    {
        "page_type": "confirmation",
        "page_order": 3,
        "title": "Project Confirmation",
        "content": (
            "Confirm your project details and timeline. We'll finalize all specifications before "
            "beginning work."
        ),
    },
    {
        "page_type": "processing",
        "page_order": 4,
        "title": "Processing Your Request",
        "content": (
            "We are preparing your custom templates. You'll receive updates throughout the creation process."
        ),
    },
)
