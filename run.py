"""
Entry Point Script (Bootstrap)
==============================
Runs a bundled configuration from a source checkout, without installing the package.

Why is this file needed?
------------------------
1. It is located outside the 'src' package to act as a convenient runner.
2. It modifies 'sys.path' to ensure Python can resolve imports like
   'from oceanrun.model...' without errors.

Usage:
    $ python run.py                       # runs assets/mixed_layer.json
    $ python run.py assets/seamount.json
"""
import sys
import os

# Add the 'src' directory to the Python path
current_dir: str = os.path.dirname(os.path.abspath(__file__))
src_path: str = os.path.join(current_dir, 'src')
sys.path.insert(0, src_path)

from oceanrun.config import ASSETS_PATH
from oceanrun.main import main

if __name__ == "__main__":
    config = sys.argv[1] if len(sys.argv) > 1 else os.path.join(ASSETS_PATH, "mixed_layer.json")
    sys.exit(main(["run", config, *sys.argv[2:]]))
