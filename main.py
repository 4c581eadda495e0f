import sys

from PySide6.QtWidgets import QApplication

from backend import OpenCVBackend
from ui import MainWindow
from utils import configure_logging, get_logger


def main():
    configure_logging()
    logger = get_logger(__name__)

    app = QApplication(sys.argv)
    app.setStyle("Fusion")

    backend = OpenCVBackend().load()
    logger.debug("Using %s backend", backend.name)

    window = MainWindow(backend)
    window.show()
    if len(sys.argv) > 1:
        window.open_path(sys.argv[1])

    sys.exit(app.exec())

if __name__ == "__main__":
    main()
