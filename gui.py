import sys
import traceback
import time
from typing import Dict, Any, Optional
from pathlib import Path

from PyQt5.QtCore import Qt, QThread, pyqtSignal, QSize, QRect
from PyQt5.QtGui import (
    QImage, QPixmap, QPainter, QColor, QPalette
)
from PyQt5.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QPushButton, QLabel, QFileDialog, QScrollArea, QComboBox, QGroupBox,
    QToolBar, QMessageBox, QAction, QSlider, QDoubleSpinBox, QFrame, QStyleFactory
)

from codec import resize_to_bound
from contaminate import get_params
from errors import ContaminateError
from raster import Raster
from state import ContaminateSession

PREVIEW_MAX_DIM = 2048


# -----------------------------------------------------------------------------
# Dark Theme
# -----------------------------------------------------------------------------
def set_dark_theme(app):
    app.setStyle(QStyleFactory.create("Fusion"))
    palette = QPalette()
    for role, color in (
        (QPalette.Window, QColor(53, 53, 53)),
        (QPalette.Base, QColor(35, 35, 35)),
        (QPalette.Button, QColor(53, 53, 53)),
        (QPalette.Highlight, QColor(42, 130, 218)),
    ):
        palette.setColor(role, color)
    for role in (QPalette.WindowText, QPalette.Text, QPalette.ButtonText):
        palette.setColor(role, Qt.white)
    app.setPalette(palette)
    app.setStyleSheet("QGroupBox { border: 1px solid #555; margin-top: 1.2em; font-weight: bold; }")


# -----------------------------------------------------------------------------
# Worker Thread
# -----------------------------------------------------------------------------
class ContaminateWorker(QThread):
    finished = pyqtSignal(object, float)
    error = pyqtSignal(str)

    def __init__(self, session: ContaminateSession, params: Dict[str, Any]):
        super().__init__()
        self.session = session
        self.params = params

    def run(self):
        try:
            t0 = time.perf_counter()
            out = self.session.generate(self.params["scale"], self.params["bias"], self.params["style"])
            self.finished.emit(out, time.perf_counter() - t0)
        except ContaminateError as e:
            self.error.emit(str(e))
        except Exception as e:
            tb = "".join(traceback.format_exception(None, e, e.__traceback__))
            self.error.emit(f"{e}\n\nTraceback:\n{tb}")


# -----------------------------------------------------------------------------
# Preview
# -----------------------------------------------------------------------------
class PreviewPane(QWidget):
    """Draws the latest raster scaled to fit, aspect preserved and centered."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.preview: Optional[Raster] = None
        self.pixmap: Optional[QPixmap] = None

    def set_raster(self, raster: Optional[Raster]):
        if raster is None or raster.width == 0 or raster.height == 0:
            self.preview, self.pixmap = None, None
        else:
            # display copy only; generation always works on the full-size slot
            self.preview = resize_to_bound(raster, PREVIEW_MAX_DIM)
            p = self.preview
            qim = QImage(p.tobytes(), p.width, p.height, p.width * 4, QImage.Format_RGBA8888)
            self.pixmap = QPixmap.fromImage(qim.copy())
        self.update()

    def target_rect(self) -> QRect:
        if not self.pixmap:
            return QRect()
        zoom = min(self.width() / self.pixmap.width(), self.height() / self.pixmap.height())
        w, h = int(self.pixmap.width() * zoom), int(self.pixmap.height() * zoom)
        return QRect((self.width() - w) // 2, (self.height() - h) // 2, w, h)

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor(30, 30, 30))
        if self.pixmap:
            painter.setRenderHint(QPainter.SmoothPixmapTransform)
            painter.drawPixmap(self.target_rect(), self.pixmap)
        else:
            painter.setPen(QColor(150, 150, 150))
            painter.drawText(self.rect(), Qt.AlignCenter, "No Image Loaded")


# -----------------------------------------------------------------------------
# Parameter Widgets
# -----------------------------------------------------------------------------
class FloatParam(QWidget):
    def __init__(self, name, val, min_val, max_val, parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 5, 0, 5)
        layout.setSpacing(2)
        layout.addWidget(QLabel(name))

        ctrl_row = QHBoxLayout()

        # whole-pixel steps
        self.spin = QDoubleSpinBox()
        self.spin.setRange(min_val, max_val)
        self.spin.setSingleStep(1.0)
        self.spin.setDecimals(1)
        self.spin.setValue(float(val))
        self.spin.setFixedWidth(70)

        self.slider = QSlider(Qt.Horizontal)
        self.slider.setRange(int(min_val), int(max_val))
        self.slider.setValue(int(val))

        self.block_updates = False
        self.spin.valueChanged.connect(self._spin_changed)
        self.slider.valueChanged.connect(self._slider_changed)

        ctrl_row.addWidget(self.slider)
        ctrl_row.addWidget(self.spin)
        layout.addLayout(ctrl_row)

    def _spin_changed(self, val):
        if self.block_updates: return
        self.block_updates = True
        self.slider.setValue(int(round(val)))
        self.block_updates = False

    def _slider_changed(self, val):
        if self.block_updates: return
        self.block_updates = True
        self.spin.setValue(float(val))
        self.block_updates = False

    def value(self):
        return self.spin.value()


class ParamPanel(QWidget):
    """Controls built from contaminate.get_params()."""

    def __init__(self):
        super().__init__()
        layout = QVBoxLayout(self)
        layout.setAlignment(Qt.AlignTop)
        layout.setContentsMargins(10, 10, 10, 10)
        layout.setSpacing(10)
        self.controls: Dict[str, QWidget] = {}

        for p in get_params():
            name = p["name"]
            if "choices" in p:
                container = QWidget()
                row = QHBoxLayout(container)
                row.setContentsMargins(0, 5, 0, 5)
                cmb = QComboBox()
                cmb.addItems([str(c) for c in p["choices"]])
                idx = cmb.findText(str(p["default"]))
                if idx >= 0: cmb.setCurrentIndex(idx)
                row.addWidget(QLabel(name))
                row.addWidget(cmb, 1)
                self.controls[name] = cmb
            else:
                container = FloatParam(name, p["default"], p["min"], p["max"])
                self.controls[name] = container
            container.setToolTip(p.get("help", ""))
            layout.addWidget(container)

        layout.addStretch()

    def get_values(self) -> Dict[str, Any]:
        out = {}
        for name, w in self.controls.items():
            out[name] = w.currentText() if isinstance(w, QComboBox) else float(w.value())
        return out


# -----------------------------------------------------------------------------
# Main Window
# -----------------------------------------------------------------------------
class ContaminateGUI(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Contaminate")
        self.resize(1400, 900)

        self.session = ContaminateSession()
        self.is_processing = False
        self.worker: Optional[ContaminateWorker] = None

        self._init_ui()
        self.view.set_raster(self.session.input)

    def _init_ui(self):
        toolbar = QToolBar("Main")
        toolbar.setIconSize(QSize(24, 24))
        self.addToolBar(toolbar)

        act_load = QAction("📂 Choose Image", self)
        act_load.triggered.connect(self.load_image)
        toolbar.addAction(act_load)

        act_save = QAction("💾 Save as PNG", self)
        act_save.triggered.connect(self.save_image)
        toolbar.addAction(act_save)

        toolbar.addSeparator()
        btn_run = QPushButton("Contaminate")
        btn_run.clicked.connect(self.generate)
        toolbar.addWidget(btn_run)

        central = QWidget()
        self.setCentralWidget(central)
        layout = QHBoxLayout(central)
        layout.setContentsMargins(10, 10, 10, 10)

        center_grp = QGroupBox("Result")
        c_layout = QVBoxLayout(center_grp)
        c_layout.setContentsMargins(0, 10, 0, 0)
        self.view = PreviewPane()
        c_layout.addWidget(self.view)
        layout.addWidget(center_grp, 1)

        self.params_grp = QGroupBox("Parameters  (C to hide)")
        self.params_grp.setFixedWidth(320)
        r_layout = QVBoxLayout(self.params_grp)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
        scroll.setFrameShape(QFrame.NoFrame)
        self.params = ParamPanel()
        scroll.setWidget(self.params)
        r_layout.addWidget(scroll)
        layout.addWidget(self.params_grp)

        self.status = QLabel("Ready")
        self.statusBar().addWidget(self.status)

    def keyPressEvent(self, event):
        if event.key() == Qt.Key_C:
            self.params_grp.setVisible(not self.params_grp.isVisible())
            return
        super().keyPressEvent(event)

    def load_image(self):
        path, _ = QFileDialog.getOpenFileName(self, "Choose Image", "", "Images (*.png *.jpg *.jpeg)")
        if not path:
            return
        try:
            raster = self.session.load(path)
        except ContaminateError as e:
            QMessageBox.critical(self, "Error", f"Failed to load: {e}")
            return
        self.view.set_raster(raster)
        self.status.setText(f"Loaded {Path(path).name} ({raster.width}x{raster.height})")

    def save_image(self):
        path, _ = QFileDialog.getSaveFileName(self, "Save Image", "contaminated.png", "Images (*.png *.jpg *.jpeg)")
        if not path:
            return
        try:
            self.session.save(path)
        except ContaminateError as e:
            QMessageBox.critical(self, "Error", f"Failed to save: {e}")
            return
        self.status.setText(f"Saved to {Path(path).name}")

    def generate(self):
        if self.is_processing:
            return
        self.is_processing = True
        self.status.setText("Processing...")

        self.worker = ContaminateWorker(self.session, self.params.get_values())
        self.worker.finished.connect(self.on_finished)
        self.worker.error.connect(self.on_error)
        self.worker.start()

    def on_finished(self, raster, dt):
        self.is_processing = False
        self.view.set_raster(raster)
        self.status.setText(f"Done in {dt * 1000:.1f} ms")

    def on_error(self, msg):
        self.is_processing = False
        self.status.setText("Error")
        QMessageBox.warning(self, "Contaminate Error", msg)


def main():
    app = QApplication(sys.argv)
    set_dark_theme(app)
    win = ContaminateGUI()
    win.show()
    sys.exit(app.exec_())


if __name__ == "__main__":
    main()
