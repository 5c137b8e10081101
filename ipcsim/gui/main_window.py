import logging
from typing import Any, Dict

from PyQt5 import QtCore
from PyQt5.QtWidgets import (
    QMainWindow,
    QWidget,
    QVBoxLayout,
    QHBoxLayout,
    QLabel,
    QComboBox,
    QLineEdit,
    QPushButton,
    QSplitter,
    QTextEdit,
    QListWidget,
    QTabWidget,
    QFileDialog,
    QMessageBox,
)

from ipcsim.analysis.analysis import AnalysisEngine
from ipcsim.core.actors import Actor
from ipcsim.core.channels import Mechanism
from ipcsim.core.config import SimulationConfig, normalize_period
from ipcsim.core.config_io import load_config_from_json, save_config_to_json, save_snapshot_to_json
from ipcsim.core.engine import SimulationEngine
from ipcsim.scenarios.presets import SCENARIOS
from .graph_view import GraphCanvas
from .timeline_canvas import TimelineCanvas

logger = logging.getLogger(__name__)

# canvases are expensive, redraw them every few ticks while running
REDRAW_EVERY = 5

SEVERITY_COLOR = {
    "INFO": "#333333",
    "WARNING": "#b8860b",
    "ERROR": "#cc0000",
    "DEADLOCK": "#8b0000",
}


class MainWindow(QMainWindow):
    def __init__(self, config: SimulationConfig = None):
        super().__init__()
        self.setWindowTitle("IPC Simulator (Python, PyQt)")
        self.resize(1200, 750)

        self.sim = SimulationEngine(config or SimulationConfig())
        self.analysis = AnalysisEngine(self.sim)

        self.timer = QtCore.QTimer(self)
        self.timer.timeout.connect(self._on_tick)

        self._build_ui()
        self._sync_controls()
        self._refresh_view(redraw=True)

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)

        main_layout = QVBoxLayout()
        central.setLayout(main_layout)

        # Top controls
        controls_layout = QHBoxLayout()
        main_layout.addLayout(controls_layout)

        self.mechanism_combo = QComboBox()
        for mech in Mechanism:
            self.mechanism_combo.addItem(mech.label)
        controls_layout.addWidget(QLabel("Mechanism:"))
        controls_layout.addWidget(self.mechanism_combo)

        self.producer_edit = QLineEdit()
        self.consumer_edit = QLineEdit()
        self.producer_edit.setMaximumWidth(70)
        self.consumer_edit.setMaximumWidth(70)
        controls_layout.addWidget(QLabel("Producer A (ms):"))
        controls_layout.addWidget(self.producer_edit)
        controls_layout.addWidget(QLabel("Consumer B (ms):"))
        controls_layout.addWidget(self.consumer_edit)

        self.btn_start = QPushButton("Start")
        self.btn_step = QPushButton("Step")
        self.btn_reset = QPushButton("Reset")
        controls_layout.addWidget(self.btn_start)
        controls_layout.addWidget(self.btn_step)
        controls_layout.addWidget(self.btn_reset)

        self.preset_combo = QComboBox()
        self.preset_combo.addItems(list(SCENARIOS.keys()))
        self.btn_preset = QPushButton("Load Preset")
        controls_layout.addWidget(self.preset_combo)
        controls_layout.addWidget(self.btn_preset)

        self.btn_save_json = QPushButton("Save Config")
        self.btn_load_json = QPushButton("Load Config")
        self.btn_export = QPushButton("Export Snapshot")
        controls_layout.addWidget(self.btn_save_json)
        controls_layout.addWidget(self.btn_load_json)
        controls_layout.addWidget(self.btn_export)

        controls_layout.addStretch()

        self.mechanism_combo.activated.connect(self.change_mechanism)
        self.producer_edit.editingFinished.connect(self.apply_periods)
        self.consumer_edit.editingFinished.connect(self.apply_periods)
        self.btn_start.clicked.connect(self.toggle_simulation)
        self.btn_step.clicked.connect(self.step_simulation)
        self.btn_reset.clicked.connect(self.reset_simulation)
        self.btn_preset.clicked.connect(self.load_preset)
        self.btn_save_json.clicked.connect(self.save_config_dialog)
        self.btn_load_json.clicked.connect(self.load_config_dialog)
        self.btn_export.clicked.connect(self.export_snapshot_dialog)

        # Splitter for left (visuals) and right (logs/issues)
        splitter = QSplitter(QtCore.Qt.Horizontal)
        main_layout.addWidget(splitter)

        # LEFT: channel state + tabbed views
        left_widget = QWidget()
        left_layout = QVBoxLayout()
        left_widget.setLayout(left_layout)

        self.channel_label = QLabel()
        self.channel_label.setWordWrap(True)
        left_layout.addWidget(self.channel_label)

        actors_layout = QHBoxLayout()
        self.actor_labels: Dict[Actor, QLabel] = {}
        for actor in Actor:
            label = QLabel()
            self.actor_labels[actor] = label
            actors_layout.addWidget(label)
        left_layout.addLayout(actors_layout)

        self.tabs = QTabWidget()
        left_layout.addWidget(self.tabs)

        self.timeline_canvas = TimelineCanvas(self)
        self.tabs.addTab(self.timeline_canvas, "Timeline")

        self.graph_canvas = GraphCanvas(self)
        self.tabs.addTab(self.graph_canvas, "Allocation Graph")

        splitter.addWidget(left_widget)

        # RIGHT: logs + metrics + issues + risk
        right_widget = QWidget()
        right_layout = QVBoxLayout()
        right_widget.setLayout(right_layout)

        right_layout.addWidget(QLabel("Events Log (newest first):"))
        self.log_text = QTextEdit()
        self.log_text.setReadOnly(True)
        right_layout.addWidget(self.log_text, stretch=2)

        self.metrics_label = QLabel()
        right_layout.addWidget(self.metrics_label)

        risk_layout = QHBoxLayout()
        risk_layout.addWidget(QLabel("Overall Risk:"))
        self.risk_label = QLabel("Unknown")
        risk_layout.addWidget(self.risk_label)
        risk_layout.addStretch()
        right_layout.addLayout(risk_layout)

        right_layout.addWidget(QLabel("Detected Issues:"))
        self.issues_list = QListWidget()
        right_layout.addWidget(self.issues_list, stretch=1)

        splitter.addWidget(right_widget)

        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 2)

    # ---------- CONFIGURATION ----------

    def _sync_controls(self):
        cfg = self.sim.config
        self.mechanism_combo.setCurrentIndex(list(Mechanism).index(cfg.mechanism))
        self.producer_edit.setText(str(cfg.producer_period_ms))
        self.consumer_edit.setText(str(cfg.consumer_period_ms))

        running = self.sim.running
        self.btn_start.setText("Pause" if running else "Start")
        for widget in (
            self.mechanism_combo,
            self.producer_edit,
            self.consumer_edit,
            self.btn_step,
            self.btn_preset,
            self.btn_load_json,
        ):
            widget.setEnabled(not running)

    def change_mechanism(self, index: int):
        mechanism = list(Mechanism)[index]
        self.timer.stop()
        self.sim.set_mechanism(mechanism)
        self._after_reset()

    def apply_periods(self):
        producer = normalize_period(self.producer_edit.text())
        consumer = normalize_period(self.consumer_edit.text())
        self.sim.set_periods(producer, consumer)
        self.producer_edit.setText(str(producer))
        self.consumer_edit.setText(str(consumer))
        self._refresh_view()

    def _install_config(self, config: SimulationConfig):
        self.timer.stop()
        self.sim = SimulationEngine(config)
        self.analysis = AnalysisEngine(self.sim)
        self._after_reset()

    def load_preset(self):
        builder = SCENARIOS[self.preset_combo.currentText()]
        self._install_config(builder())

    def save_config_dialog(self):
        filepath, _ = QFileDialog.getSaveFileName(
            self,
            "Save Configuration as JSON",
            "",
            "JSON Files (*.json);;All Files (*)",
        )
        if not filepath:
            return

        try:
            save_config_to_json(filepath, self.sim.config)
            QMessageBox.information(self, "Saved", f"Configuration saved to:\n{filepath}")
        except OSError as e:
            QMessageBox.critical(self, "Error Saving", f"Failed to save configuration:\n{e}")

    def load_config_dialog(self):
        filepath, _ = QFileDialog.getOpenFileName(
            self,
            "Load Configuration from JSON",
            "",
            "JSON Files (*.json);;All Files (*)",
        )
        if not filepath:
            return

        try:
            config = load_config_from_json(filepath)
        except (OSError, ValueError, TypeError) as e:
            QMessageBox.critical(self, "Error Loading", f"Failed to load configuration:\n{e}")
            return

        self._install_config(config)

    def export_snapshot_dialog(self):
        filepath, _ = QFileDialog.getSaveFileName(
            self,
            "Export Snapshot as JSON",
            "",
            "JSON Files (*.json);;All Files (*)",
        )
        if not filepath:
            return

        try:
            save_snapshot_to_json(filepath, self.sim)
        except OSError as e:
            QMessageBox.critical(self, "Error Exporting", f"Failed to export snapshot:\n{e}")

    # ---------- SIMULATION CONTROL ----------

    def toggle_simulation(self):
        self.sim.toggle()
        if self.sim.running:
            self.timer.start(self.sim.config.tick_ms)
        else:
            self.timer.stop()
        self._sync_controls()

    def step_simulation(self):
        self.sim.step()
        self._refresh_view(redraw=True)

    def reset_simulation(self):
        self.timer.stop()
        self.sim.reset()
        self._after_reset()

    def _after_reset(self):
        self._sync_controls()
        self._refresh_view(redraw=True)

    def _on_tick(self):
        self.sim.step()
        if not self.sim.running:
            self.timer.stop()
            self._sync_controls()
            self._refresh_view(redraw=True)
            return
        self._refresh_view(redraw=self.sim.tick % REDRAW_EVERY == 0)

    # ---------- VIEW REFRESH ----------

    def _refresh_view(self, redraw: bool = False):
        snap = self.sim.snapshot()
        self.channel_label.setText(_describe_channel(snap["channel"]))
        for actor, label in self.actor_labels.items():
            st = snap["actors"][actor.value]
            label.setText(f"{actor.label}: {st['phase']} ({st['period_ms']}ms/op)")
        self._update_metrics(snap["metrics"])
        self._update_logs()

        if redraw:
            self.timeline_canvas.plot_timeline(self.sim.state_history, self.sim.tick)
            self.graph_canvas.plot_graph(self.analysis)
            self._update_issues()
            self._update_risk_label()

    def _update_metrics(self, m: Dict[str, Any]):
        self.metrics_label.setText(
            f"Tick {m['tick_count']} | produced {m['produced_count']} | "
            f"consumed {m['consumed_count']} | throughput {m['throughput']:.2f}/s | "
            f"avg wait A {m['avg_wait_a']:.2f}ms | avg wait B {m['avg_wait_b']:.2f}ms"
        )

    def _update_logs(self):
        lines = []
        for ev in self.sim.events:
            color = SEVERITY_COLOR.get(ev.severity.value, "#333333")
            lines.append(
                f'<span style="color:{color}">t={ev.timestamp:06d}ms '
                f"[{ev.severity.value}] {ev.message}</span>"
            )
        self.log_text.setHtml("<br>".join(lines))

    def _update_issues(self):
        self.issues_list.clear()
        msgs = self.analysis.summarize_issues()
        if not msgs:
            self.issues_list.addItem("No major issues detected yet.")
        else:
            for m in msgs:
                self.issues_list.addItem(m)

    def _update_risk_label(self):
        self.risk_label.setText(self.analysis.risk_summary_text())


def _describe_channel(snap: Dict[str, Any]) -> str:
    mech = snap["mechanism"]
    if mech in ("PIPE", "PRIORITY_QUEUE"):
        cells = " ".join(f"{it['value']}/P{it['priority']}" for it in snap["items"])
        line = f"{Mechanism[mech].label}: {snap['length']}/{snap['capacity']} filled  [{cells}]"
        if snap.get("next_index") is not None:
            line += f"  next out: #{snap['next_index']}"
        return line
    if mech == "SHARED_MEMORY":
        holder = snap["lock_holder"]
        lock = f"Held by P-{holder}" if holder else "Free"
        return f"Memory Segment: {snap['value']} | Accesses: {snap['access_count']} | Lock Status: {lock}"
    parts = []
    for name, res in snap["resources"].items():
        held = res["held_by"] or "-"
        wanted = res["requested_by"] or "-"
        parts.append(f"{name}: held by {held}, requested by {wanted}")
    if snap["deadlocked"]:
        parts.append("Circular Wait Detected! (Deadlock)")
    return " | ".join(parts)
