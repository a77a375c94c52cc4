# ruff: noqa: E402
"""Run the ``uniprot-rest`` command line interface from a source checkout.

Examples
--------
Count reviewed human entries::

    python scripts/uniprot_search_main.py count "organism_id:9606 AND reviewed:true"

Print the second page of ten results as JSON::

    python scripts/uniprot_search_main.py page "gene:TP53" --offset 10
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from uniprot_rest.cli import main


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
