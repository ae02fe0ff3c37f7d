"""Run one autonomous agent. Usage: python scripts/run_agent.py <agent-id>"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from autoagent.interfaces.cli import main

if __name__ == "__main__":
    main()
