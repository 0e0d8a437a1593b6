"""chainload - concurrent load benchmarks for stateful ledger services.

Ambient pieces (logging, configuration, errors) and the ledger client
capability consumed by the ``bench`` harness.
"""

from __future__ import annotations

__version__ = "0.1.0"
__all__ = ["__version__"]
