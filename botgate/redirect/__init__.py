"""botgate redirect package.

  - handler.py — catch-all route: resolve → classify → enrich → 302
"""
