import logging
import sys

from PyQt5.QtWidgets import QApplication

from ipcsim.core.config_io import load_config_from_json
from .main_window import MainWindow


def main(argv=None) -> int:
    argv = list(sys.argv if argv is None else argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config_from_json(argv[1]) if len(argv) > 1 else None

    app = QApplication(argv)
    window = MainWindow(config)
    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
