"""
Feature modules: clients, journeys, hypotheses, outcomes, analytics.

Each module owns its models, service functions and admin blueprint, and reuses
the platform pieces (auth, RBAC, audit, DB session).
"""
