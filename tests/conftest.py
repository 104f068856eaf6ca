# tests/conftest.py
import os
import sys
from pathlib import Path

# Flat layout: make the top-level packages importable without an install.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)
