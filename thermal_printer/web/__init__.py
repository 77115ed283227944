"""
Web module for the thermal print service.

Exposes blueprints for:
- Print sessions and queues: print_bp
- Monitoring, metrics and alerts: monitoring_bp
- Printer configuration and connection tests: printers_bp
- Health endpoint: health_bp
"""

from .health import health_bp
from .monitoring import monitoring_bp
from .print_session import print_bp
from .printers import printers_bp

__all__ = ["health_bp", "monitoring_bp", "print_bp", "printers_bp"]
