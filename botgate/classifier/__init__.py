"""botgate consensus classifier package.

  - providers.py — the five fail-open reputation checks (P1..P5)
  - consensus.py — concurrent fan-out, deadline-bounded fan-in, OR combination
"""

from botgate.classifier.consensus import classify, is_automated
from botgate.classifier.providers import PROVIDERS

__all__ = ["PROVIDERS", "classify", "is_automated"]
