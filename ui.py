import time
from pathlib import Path

from PySide6.QtWidgets import (QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
                               QLabel, QPushButton, QComboBox, QSlider, QGroupBox, QScrollArea,
                               QSplitter, QFileDialog, QCheckBox, QGraphicsView, QGraphicsScene,
                               QGraphicsPixmapItem)
from PySide6.QtCore import Qt, QThread, Signal, QTimer, QObject
from PySide6.QtGui import QImage, QPixmap, QPainter, QWheelEvent

import settings
from backend import OpenCVBackend
from errors import EditorError, MissingSourceError, user_message
from models import PARAMETER_RANGES
from pipeline import AdjustmentPipeline
from processors import FilterRegistry
from session import EditSession
from utils import get_logger

logger = get_logger(__name__)


class WorkerSignals(QObject):
    finished = Signal(int, object, float) # token, processed_image, duration
    error = Signal(int, object) # token, exception


class ImageWorker(QThread):
    def __init__(self, pipeline, request):
        super().__init__()
        self.pipeline = pipeline
        self.request = request
        self.signals = WorkerSignals()

    def run(self):
        t0 = time.time()
        try:
            img = self.pipeline.apply(self.request.source, self.request.params)
        except Exception as e:
            self.signals.error.emit(self.request.token, e)
            return
        duration = (time.time() - t0) * 1000
        self.signals.finished.emit(self.request.token, img, duration)


class ImageGraphicsView(QGraphicsView):
    """QGraphicsView showing a RasterImage with wheel zoom."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setRenderHint(QPainter.Antialiasing)
        self.setRenderHint(QPainter.SmoothPixmapTransform)
        self.setDragMode(QGraphicsView.ScrollHandDrag)
        self.setTransformationAnchor(QGraphicsView.AnchorUnderMouse)
        # Drops are handled by the main window
        self.setAcceptDrops(False)

        self.scene = QGraphicsScene(self)
        self.setScene(self.scene)
        self.pixmap_item = QGraphicsPixmapItem()
        self.scene.addItem(self.pixmap_item)

    def set_image(self, image, reset_view=True):
        if image is None:
            self.pixmap_item.setPixmap(QPixmap())
            return

        width, height = image.width, image.height
        # copy() detaches the QImage from the numpy buffer
        q_img = QImage(image.pixels.tobytes(), width, height, 4 * width, QImage.Format_RGBA8888).copy()
        self.pixmap_item.setPixmap(QPixmap.fromImage(q_img))
        self.scene.setSceneRect(0, 0, width, height)

        if reset_view:
            self.fitInView(self.pixmap_item, Qt.KeepAspectRatio)

    def wheelEvent(self, event: QWheelEvent):
        zoom_in_factor = 1.25
        scale_factor = zoom_in_factor if event.angleDelta().y() > 0 else 1 / zoom_in_factor
        self.scale(scale_factor, scale_factor)


class MainWindow(QMainWindow):
    def __init__(self, backend=None):
        super().__init__()
        self.setWindowTitle("imgadjust")
        self.resize(*settings.UI_DEFAULTS["window_size"])
        self.setAcceptDrops(True)

        self.backend = backend or OpenCVBackend()
        self.session = EditSession(AdjustmentPipeline(self.backend))
        self.current_worker = None
        self._pending_run = False
        self._syncing_controls = False

        # Debounce timer
        self.update_timer = QTimer()
        self.update_timer.setSingleShot(True)
        self.update_timer.setInterval(settings.UI_DEFAULTS["debounce_ms"])
        self.update_timer.timeout.connect(self.start_processing)

        self.init_ui()
        self.set_controls(self.session.params)

    def init_ui(self):
        main_widget = QWidget()
        self.setCentralWidget(main_widget)
        main_layout = QHBoxLayout(main_widget)

        self.lbl_original = ImageGraphicsView()
        self.lbl_processed = ImageGraphicsView()
        self.splitter = QSplitter(Qt.Horizontal)
        self.splitter.addWidget(self.lbl_original)
        self.splitter.addWidget(self.lbl_processed)

        # --- Left Sidebar (Controls) ---
        sidebar = QScrollArea()
        sidebar.setWidgetResizable(True)
        sidebar.setMinimumWidth(settings.UI_DEFAULTS["sidebar_min_width"])
        sidebar_content = QWidget()
        sidebar_layout = QVBoxLayout(sidebar_content)
        sidebar_layout.setAlignment(Qt.AlignTop)

        # 1. File Group
        file_group = QGroupBox("File Operations")
        file_layout = QGridLayout()
        btn_load = QPushButton("Open Image")
        btn_load.clicked.connect(self.load_image)
        self.btn_save = QPushButton("Download JPEG")
        self.btn_save.clicked.connect(self.save_image)
        btn_import = QPushButton("Import Adjustments")
        btn_import.clicked.connect(self.import_settings)
        btn_export = QPushButton("Export Adjustments")
        btn_export.clicked.connect(self.export_settings)

        file_layout.addWidget(btn_load, 0, 0)
        file_layout.addWidget(self.btn_save, 0, 1)
        file_layout.addWidget(btn_import, 1, 0)
        file_layout.addWidget(btn_export, 1, 1)
        file_group.setLayout(file_layout)
        sidebar_layout.addWidget(file_group)

        # 2. Adjustments Group
        color_group = QGroupBox("Adjustments")
        color_layout = QGridLayout() # Label, Slider, Value

        self.sliders = {} # field name -> (slider, scale)

        def add_slider(field, label, row, scale=1, suffix=""):
            min_val, max_val = PARAMETER_RANGES[field]
            lbl = QLabel(label)
            slider = QSlider(Qt.Horizontal)
            slider.setRange(int(min_val * scale), int(max_val * scale))
            val_lbl = QLabel()

            def show_value(v):
                value = v / scale
                val_lbl.setText(f"{value:g}{suffix}")

            slider.valueChanged.connect(show_value)
            slider.valueChanged.connect(self.on_controls_changed)
            show_value(slider.value())

            color_layout.addWidget(lbl, row, 0)
            color_layout.addWidget(slider, row, 1)
            color_layout.addWidget(val_lbl, row, 2)
            self.sliders[field] = (slider, scale)

        add_slider("brightness", "Brightness", 0, suffix="%")
        add_slider("contrast", "Contrast", 1, suffix="%")
        add_slider("saturation", "Saturation", 2, suffix="%")
        add_slider("blur", "Blur", 3, scale=2)
        add_slider("sharpen", "Sharpen", 4, scale=10)
        add_slider("hue", "Hue Rotation", 5, suffix="°")

        self.check_flip_h = QCheckBox("Flip Horizontal")
        self.check_flip_v = QCheckBox("Flip Vertical")
        self.check_flip_h.toggled.connect(self.on_controls_changed)
        self.check_flip_v.toggled.connect(self.on_controls_changed)
        color_layout.addWidget(self.check_flip_h, 6, 0, 1, 2)
        color_layout.addWidget(self.check_flip_v, 7, 0, 1, 2)

        btn_reset = QPushButton("Reset All")
        btn_reset.clicked.connect(self.reset_adjustments)
        color_layout.addWidget(btn_reset, 8, 0, 1, 3)

        color_group.setLayout(color_layout)
        sidebar_layout.addWidget(color_group)

        # 3. Filter Group
        filter_group = QGroupBox("Filters")
        filter_layout = QVBoxLayout()
        self.combo_filter = QComboBox()
        for name in FilterRegistry.get_filter_names():
            processor = FilterRegistry.get_filter(name)
            self.combo_filter.addItem(processor.label, name.value)
            self.combo_filter.setItemData(self.combo_filter.count() - 1, processor.description, Qt.ToolTipRole)
        self.combo_filter.currentIndexChanged.connect(self.on_controls_changed)
        filter_layout.addWidget(self.combo_filter)
        filter_group.setLayout(filter_layout)
        sidebar_layout.addWidget(filter_group)

        sidebar.setWidget(sidebar_content)
        main_layout.addWidget(sidebar)
        main_layout.addWidget(self.splitter, stretch=1)

        self.status_lbl = QLabel("Drop an image here or click Open Image")
        self.statusBar().addWidget(self.status_lbl)

    # --- Parameters <-> controls ---

    def read_controls(self):
        values = {}
        for field, (slider, scale) in self.sliders.items():
            value = slider.value() / scale
            values[field] = value if scale != 1 else int(value)
        values["flip_horizontal"] = self.check_flip_h.isChecked()
        values["flip_vertical"] = self.check_flip_v.isChecked()
        values["selected_filter"] = self.combo_filter.currentData()
        return values

    def set_controls(self, params):
        self._syncing_controls = True
        for field, (slider, scale) in self.sliders.items():
            slider.setValue(int(round(getattr(params, field) * scale)))
        self.check_flip_h.setChecked(params.flip_horizontal)
        self.check_flip_v.setChecked(params.flip_vertical)
        self.combo_filter.setCurrentIndex(self.combo_filter.findData(params.selected_filter.value))
        self._syncing_controls = False

    def on_controls_changed(self, *args):
        if self._syncing_controls:
            return
        self.session.update(**self.read_controls())
        self.trigger_update()

    def trigger_update(self):
        if self.session.has_image:
            self.update_timer.start()

    def reset_adjustments(self):
        self.set_controls(self.session.reset())
        self.trigger_update()
        self.status_lbl.setText("All adjustments have been reset to default values")

    # --- Processing ---

    def start_processing(self):
        if not self.session.has_image:
            return
        # One run at a time; the latest parameters are picked up when it ends
        if self.current_worker is not None:
            self._pending_run = True
            return
        try:
            if not self.backend.is_ready():
                self.backend.load()
            request = self.session.begin_run()
        except EditorError as e:
            self.show_error(e)
            return

        worker = ImageWorker(self.session.pipeline, request)
        worker.signals.finished.connect(self.on_processing_finished)
        worker.signals.error.connect(self.on_processing_failed)
        worker.finished.connect(self.on_worker_done)
        self.current_worker = worker
        worker.start()
        self.status_lbl.setText("Processing...")

    def on_worker_done(self):
        worker = self.current_worker
        if worker is not None:
            # finished is emitted before the thread has fully stopped
            worker.wait()
        self.current_worker = None
        if self._pending_run:
            self._pending_run = False
            self.start_processing()

    def on_processing_finished(self, token, img, duration):
        if not self.session.complete_run(token, img):
            return
        self.lbl_processed.set_image(img, reset_view=False)
        self.status_lbl.setText(f"Processed in {duration:.1f} ms")

    def on_processing_failed(self, token, error):
        if self.session.fail_run(token, error):
            self.status_lbl.setText(f"Error: {self.session.last_error}")

    def show_error(self, error):
        logger.warning("%s", error)
        self.status_lbl.setText(f"Error: {user_message(error)}")

    # --- Files ---

    def open_path(self, path):
        try:
            image = self.session.load_file(path)
        except EditorError as e:
            self.show_error(e)
            return
        self.lbl_original.set_image(image, reset_view=True)
        self.lbl_processed.set_image(image, reset_view=True)
        self.status_lbl.setText(f"Loaded {Path(path).name} ({image.width}x{image.height})")
        self.trigger_update()

    def load_image(self):
        formats = " ".join(f"*.{fmt.split('/')[1]}" for fmt in settings.UPLOAD_DEFAULTS["accepted_formats"])
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", f"Images ({formats} *.jpg)")
        if path:
            self.open_path(path)

    def save_image(self):
        if self.session.output is None:
            self.show_error(MissingSourceError("Nothing to save"))
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "Save Image", settings.EXPORT_DEFAULTS["default_filename"], "JPEG (*.jpg *.jpeg)")
        if path:
            try:
                self.session.export_jpeg(path)
            except EditorError as e:
                self.show_error(e)
                return
            self.status_lbl.setText(f"Image saved to {path}")

    def export_settings(self):
        path, _ = QFileDialog.getSaveFileName(
            self, "Export Adjustments", settings.EXPORT_DEFAULTS["preset_filename"], "JSON (*.json)")
        if path:
            try:
                self.session.export_preset(path)
            except OSError as e:
                self.status_lbl.setText(f"Error exporting adjustments: {e}")
                return
            self.status_lbl.setText(f"Adjustments exported to {path}")

    def import_settings(self):
        path, _ = QFileDialog.getOpenFileName(self, "Import Adjustments", "", "JSON (*.json)")
        if path:
            try:
                params = self.session.import_preset(path)
            except (OSError, ValueError) as e:
                self.status_lbl.setText(f"Error importing adjustments: {e}")
                return
            self.set_controls(params)
            self.trigger_update()
            self.status_lbl.setText(f"Adjustments imported from {path}")

    # --- Drag and drop ---

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        urls = [u for u in event.mimeData().urls() if u.isLocalFile()]
        if urls:
            event.acceptProposedAction()
            self.open_path(urls[0].toLocalFile())

    def closeEvent(self, event):
        self.update_timer.stop()
        self._pending_run = False
        if self.current_worker is not None:
            self.current_worker.wait()
        super().closeEvent(event)

