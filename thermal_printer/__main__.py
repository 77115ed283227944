"""
Run the thermal print service with Flask's built-in server.

Host and port come from THERMALPRINTER_HOST / THERMALPRINTER_PORT.
"""

from __future__ import annotations

import os
from typing import Optional

from flask import Flask

from thermal_printer import create_app
from thermal_printer.core.config import env_int


def serve(app: Optional[Flask] = None) -> None:
    app = app or create_app()
    host = os.environ.get("THERMALPRINTER_HOST", "0.0.0.0")
    port = env_int("THERMALPRINTER_PORT", 3000)
    # The reloader would start a second set of printer workers
    app.run(host=host, port=port, debug=False, use_reloader=False)


def main() -> None:
    serve()


if __name__ == "__main__":
    main()
