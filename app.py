#!/usr/bin/env python3
"""
Thermal print service - REST API for ESC/POS thermal printers

Thin launcher kept for `flask --app app run` and WSGI servers.
"""

from thermal_printer import create_app
from thermal_printer.__main__ import serve

app = create_app()

if __name__ == "__main__":
    serve(app)
