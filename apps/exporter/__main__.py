"""
Exporter Module Entry Point

Allows execution via: python -m apps.exporter

Delegates to scheduler for all execution modes (scheduled and RUN_ONCE).
"""

from apps.exporter.scheduler import main

if __name__ == "__main__":
    main()
