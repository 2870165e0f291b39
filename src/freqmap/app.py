"""Demo host window embedding :class:`~freqmap.viewer.FrequencyMapViewer`."""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import Optional

from PySide6.QtGui import QAction, QKeySequence
from PySide6.QtWidgets import (
    QApplication,
    QComboBox,
    QFileDialog,
    QLabel,
    QMainWindow,
    QMessageBox,
    QToolBar,
    QWidget,
)

from .basemaps import BasemapCatalog
from .config import DEFAULT_BASE_LAYER
from .errors import FreqMapError
from .records import FieldConfig, FrequencyRecord
from .viewer import FrequencyMapViewer

LOGGER = logging.getLogger(__name__)

ALL_GENES_LABEL = "All genes"


class MainWindow(QMainWindow):
    """Primary application window hosting the frequency map."""

    def __init__(
        self,
        records: Sequence[FrequencyRecord],
        *,
        catalog: BasemapCatalog | None = None,
        base_layer: str = DEFAULT_BASE_LAYER,
        field_config: FieldConfig | None = None,
        title: str = "Allele Frequency Map",
    ) -> None:
        super().__init__()
        self._title = title
        self.setWindowTitle(title)
        self.resize(1024, 768)

        self._container = QWidget(self)
        self.setCentralWidget(self._container)

        self._viewer = FrequencyMapViewer(
            catalog=catalog,
            base_layer=base_layer,
            field_config=field_config,
            parent=self,
        )
        self._viewer.baseLayerChanged.connect(self._on_base_layer_changed)
        self._ready = self._viewer.initialize(self._container, records)
        self._ready.finished.connect(self._on_ready)

        self._create_actions()
        self._create_toolbar(base_layer)
        self._update_window_title()

    # ------------------------------------------------------------------
    @property
    def viewer(self) -> FrequencyMapViewer:
        return self._viewer

    # ------------------------------------------------------------------
    @property
    def gene_selector(self) -> QComboBox:
        return self._gene_combo

    # ------------------------------------------------------------------
    @property
    def basemap_selector(self) -> QComboBox:
        return self._basemap_combo

    # ------------------------------------------------------------------
    def _create_actions(self) -> None:
        """Assemble actions that appear in the menu bar and toolbar."""

        self._action_reset_view = QAction("Reset View", self)
        self._action_reset_view.triggered.connect(self._reset_view)

        self._action_export = QAction("Export View…", self)
        self._action_export.setShortcut(QKeySequence("Ctrl+E"))
        self._action_export.triggered.connect(self._export_view)

        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("File")
        file_menu.addAction(self._action_export)
        view_menu = menu_bar.addMenu("View")
        view_menu.addAction(self._action_reset_view)

    # ------------------------------------------------------------------
    def _create_toolbar(self, base_layer: str) -> None:
        toolbar = QToolBar("Map", self)
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        toolbar.addWidget(QLabel("Gene: ", toolbar))
        self._gene_combo = QComboBox(toolbar)
        self._gene_combo.addItem(ALL_GENES_LABEL)
        self._gene_combo.addItems(self._viewer.genes())
        self._gene_combo.currentTextChanged.connect(self._on_gene_selected)
        toolbar.addWidget(self._gene_combo)

        toolbar.addSeparator()
        toolbar.addWidget(QLabel("Basemap: ", toolbar))
        self._basemap_combo = QComboBox(toolbar)
        self._basemap_combo.addItems(list(self._viewer.catalog))
        self._basemap_combo.setCurrentText(base_layer)
        self._basemap_combo.textActivated.connect(self._viewer.switch_base_layer)
        toolbar.addWidget(self._basemap_combo)

        toolbar.addSeparator()
        toolbar.addAction(self._action_reset_view)
        toolbar.addAction(self._action_export)

    # ------------------------------------------------------------------
    def _on_ready(self, map_view: object) -> None:
        if map_view is not None:
            LOGGER.info("Map ready with %d markers", self._viewer.marker_count)
        self._update_window_title()

    # ------------------------------------------------------------------
    def _on_gene_selected(self, gene: str) -> None:
        if gene == ALL_GENES_LABEL:
            self._viewer.add_all_markers()
        else:
            self._viewer.filter_by_gene(gene)
        self._update_window_title()

    # ------------------------------------------------------------------
    def _on_base_layer_changed(self, name: str) -> None:
        """Keep the selector in sync with completed swaps."""

        if self._basemap_combo.currentText() != name:
            self._basemap_combo.blockSignals(True)
            self._basemap_combo.setCurrentText(name)
            self._basemap_combo.blockSignals(False)
        self._update_window_title()

    # ------------------------------------------------------------------
    def _reset_view(self) -> None:
        map_view = self._viewer.get_map()
        if map_view is not None:
            map_view.reset_view()

    # ------------------------------------------------------------------
    def _export_view(self) -> None:
        path, _ = QFileDialog.getSaveFileName(self, "Export map view", "map.png", "PNG Images (*.png)")
        if not path:
            return
        try:
            self._viewer.export_current_view(path)
        except FreqMapError as exc:  # pragma: no cover - best effort error reporting
            QMessageBox.critical(self, "Error", f"Unable to export the map:\n{exc}")

    # ------------------------------------------------------------------
    def _update_window_title(self) -> None:
        layer = self._viewer.current_base_layer or "-"
        self.setWindowTitle(f"{self._title} ({self._viewer.marker_count} markers, {layer})")

    # ------------------------------------------------------------------
    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._viewer.cleanup()
        super().closeEvent(event)


def run(
    records: Sequence[FrequencyRecord],
    *,
    catalog: BasemapCatalog | None = None,
    base_layer: str = DEFAULT_BASE_LAYER,
    field_config: FieldConfig | None = None,
    title: Optional[str] = None,
) -> int:
    """Show :class:`MainWindow` for *records* and run the Qt event loop."""

    app = QApplication.instance() or QApplication(sys.argv)
    window = MainWindow(
        records,
        catalog=catalog,
        base_layer=base_layer,
        field_config=field_config,
        title=title or "Allele Frequency Map",
    )
    window.show()
    return app.exec()

