"""
Back-Office API

Multi-tenant SaaS back-office: organizations with role-based membership,
API keys, settings, subscription billing, audit logging and a CRM-style
pipeline/stage/lead tracker with comments and @mentions.
"""

__version__ = "1.0.0"
