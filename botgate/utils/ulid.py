"""Request identifiers for botgate.

Every inbound visitor request is tagged with a ULID. It is bound into the
structlog context and echoed back in the ``X-Botgate-Request-ID`` header so a
redirect seen by an operator can be matched with its log lines.

Uses the ``python-ulid`` library; do not hand-roll ULID generation.
"""

from __future__ import annotations

from ulid import ULID


def generate_ulid() -> str:
    """Return a new 26-character Crockford Base32 ULID string.

    Example::

        request_id = generate_ulid()
        assert len(request_id) == 26
    """
    return str(ULID())
