"""botgate models package.

Defines the data contracts shared across the classification pipeline:

  - verdict.py  — Verdict, Classification, IpInfo
  - payloads.py — pydantic schemas for provider responses + ProviderParseError
"""
