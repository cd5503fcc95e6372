"""
Root conftest.py - puts the repository root on sys.path before collection.

The actions, clients and webhook_server modules are imported by tests
without installing the project.
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
