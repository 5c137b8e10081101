import networkx as nx
from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from ipcsim.analysis.analysis import AnalysisEngine

NODE_STYLE = {
    "actor": ("o", "lightblue"),
    "resource": ("s", "lightcoral"),
    "lock": ("s", "khaki"),
    "buffer": ("D", "lightgreen"),
}


class GraphCanvas(FigureCanvas):
    """
    Resource allocation graph of the running simulation.

    - Circles: actors
    - Squares / diamonds: resources, the mutex or the buffer
    - Solid edges: held / data flow, dashed edges: pending requests
    - Edges on a detected cycle are drawn in red
    """

    def __init__(self, parent=None):
        fig = Figure()
        super().__init__(fig)
        self.ax = fig.add_subplot(111)
        self.setParent(parent)

    def plot_graph(self, analysis: AnalysisEngine):
        self.ax.clear()
        G = analysis.allocation_graph()
        cycle_edges = set(analysis.detect_deadlock()["cycle"])

        pos = nx.circular_layout(G)

        for kind, (shape, color) in NODE_STYLE.items():
            nodes = [n for n, d in G.nodes(data=True) if d.get("kind") == kind]
            if not nodes:
                continue
            nx.draw_networkx_nodes(
                G,
                pos,
                nodelist=nodes,
                node_shape=shape,
                node_size=900,
                node_color=color,
                edgecolors="black",
                ax=self.ax,
            )

        requested = [(u, v) for u, v, d in G.edges(data=True) if d.get("relation") == "requested"]
        solid = [e for e in G.edges if e not in requested]
        for edges, style in ((solid, "solid"), (requested, "dashed")):
            if not edges:
                continue
            nx.draw_networkx_edges(
                G,
                pos,
                edgelist=edges,
                style=style,
                edge_color=["red" if e in cycle_edges else "black" for e in edges],
                arrows=True,
                arrowsize=15,
                node_size=900,
                ax=self.ax,
            )

        labels = {n: G.nodes[n].get("label", n) for n in G.nodes}
        nx.draw_networkx_labels(G, pos, labels=labels, font_size=8, ax=self.ax)

        self.ax.set_axis_off()
        self.ax.set_title("Resource Allocation Graph")
        self.draw()
