"""
Clients module: onboarding prospects and their G-token access links.
"""
