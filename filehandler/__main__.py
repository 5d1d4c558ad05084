"""
Entry point for python -m filehandler.

  python -m filehandler map.json points.csv       -> payload JSON on stdout
  python -m filehandler https://host/data.geojson -o payload.json
"""
import sys

from filehandler.cli import main

sys.exit(main())
