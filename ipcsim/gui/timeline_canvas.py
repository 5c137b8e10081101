from typing import Dict, Iterable, Optional

from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from ipcsim.core.actors import Actor, Phase

# only the most recent ticks are drawn
WINDOW = 200

PHASE_COLOR = {
    Phase.IDLE: "lightgray",
    Phase.RUNNING: "green",
    Phase.BLOCKED: "gold",
    Phase.WAITING: "royalblue",
    Phase.DEADLOCKED: "red",
}


class TimelineCanvas(FigureCanvas):
    def __init__(self, parent=None):
        fig = Figure()
        super().__init__(fig)
        self.ax = fig.add_subplot(111)
        self.setParent(parent)

    def plot_timeline(self, state_history: Dict[Actor, Iterable[Phase]], end_tick: Optional[int] = None):
        self.ax.clear()
        if not state_history:
            self.draw()
            return

        # the engine keeps a bounded history, so tick numbers are counted back from end_tick
        state_history = {actor: list(h) for actor, h in state_history.items()}
        actors = list(state_history.keys())
        y_positions = {actor: i for i, actor in enumerate(actors)}

        total = max(len(history) for history in state_history.values())
        if total == 0:
            self.draw()
            return
        if end_tick is None:
            end_tick = total
        first_tick = end_tick - total
        offset = max(0, total - WINDOW)

        for actor, full_history in state_history.items():
            history = full_history[offset:]
            y = y_positions[actor]
            if not history:
                continue
            start = 0
            current = history[0]
            for t in range(1, len(history) + 1):
                if t == len(history) or history[t] != current:
                    self.ax.barh(
                        y,
                        width=t - start,
                        left=first_tick + offset + start,
                        height=0.4,
                        align="center",
                        color=PHASE_COLOR.get(current, "gray"),
                        edgecolor="black",
                    )
                    start = t
                    if t < len(history):
                        current = history[t]

        self.ax.set_yticks(list(y_positions.values()))
        self.ax.set_yticklabels([actor.label for actor in actors])
        self.ax.set_xlabel("Time (ticks)")
        self.ax.set_title("Actor Phases")
        self.ax.invert_yaxis()
        self.ax.grid(True, axis="x", linestyle="--", linewidth=0.5)
        self.draw()
