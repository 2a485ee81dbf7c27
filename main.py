"""Glossa - desktop LLM chat client with inline annotations.

Entry point for the application.
"""

import sys
import asyncio

from PySide6.QtWidgets import QApplication
from qasync import QEventLoop

from glossa.config.settings import settings
from glossa.ui.main_window import MainWindow
from glossa.utils.logging_config import configure_logging


def main() -> int:
    """Run the Glossa application.

    Returns:
        Exit code
    """
    configure_logging(settings.log_level)

    app = QApplication(sys.argv)
    app.setApplicationName("Glossa")
    app.setApplicationVersion("0.1.0")

    # Qt-integrated asyncio loop so adapters can stream on the UI thread
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    window = MainWindow()
    window.show()

    with loop:
        return loop.run_forever()


if __name__ == "__main__":
    sys.exit(main())
