# Ensure the `backend` directory is importable so `import transcriber` works
# without installing the package.
from __future__ import annotations

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))
