"""
Praxis Legal Backend

Lawyer onboarding, subscription billing, AI-assisted legal agents, document
requests with SLA tracking and an AI copilot for document drafting.
"""

__version__ = "1.0.0"
__author__ = "Praxis Legal Team"
__description__ = "Backend for the Praxis legal-services platform"
