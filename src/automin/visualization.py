import matplotlib
import matplotlib.pyplot as plt
from matplotlib.colors import to_rgba
import networkx as nx

from automin.automaton import Automaton

CLASS_COLORS = matplotlib.colormaps["tab20"].colors


def build_graph(automaton: Automaton) -> nx.DiGraph:
    G = nx.DiGraph()
    for sid, state in automaton.states.items():
        G.add_node(
            sid,
            accepting=state.is_accepting,
            equivalence_class=state.equivalence_class,
            rules=list(state.rules),
        )
    for source, symbol, target in automaton.iter_transitions():
        if G.has_edge(source, target):
            G[source][target]["symbols"].append(symbol)
        else:
            G.add_edge(source, target, symbols=[symbol])
    return G


class AutomatonVisualizer:
    def __init__(self, automaton: Automaton):
        self.automaton = automaton

    def node_color(self, node: str):
        state = self.automaton.states[node]
        if state.equivalence_class is not None:
            return CLASS_COLORS[state.equivalence_class % len(CLASS_COLORS)]
        if node == self.automaton.initial_state:
            return "lightgreen" if state.is_accepting else "lightblue"
        if state.is_accepting:
            return "lightcoral"
        return "lightgray"

    def plot(self, ax, title="Automaton"):
        G = build_graph(self.automaton)

        if len(G.nodes) == 0:
            ax.text(
                0.5,
                0.5,
                "Empty Automaton",
                ha="center",
                va="center",
                transform=ax.transAxes,
            )
            ax.set_title(title)
            return

        if len(G.nodes) <= 6:
            pos = nx.spring_layout(G, k=2.5, iterations=100, seed=42)
        else:
            pos = nx.spring_layout(G, k=1.5, iterations=50, seed=42)

        node_size = min(2000, max(800, 15000 // max(len(G.nodes), 1)))
        nx.draw_networkx_nodes(
            G,
            pos,
            node_color=[to_rgba(self.node_color(n)) for n in G.nodes()],
            node_size=node_size,
            ax=ax,
            alpha=0.9,
        )
        accepting = [n for n, d in G.nodes(data=True) if d["accepting"]]
        if accepting:
            nx.draw_networkx_nodes(
                G,
                pos,
                nodelist=accepting,
                node_color="none",
                edgecolors="black",
                linewidths=2.0,
                node_size=node_size * 1.25,
                ax=ax,
            )
        nx.draw_networkx_labels(G, pos, font_size=8, font_weight="bold", ax=ax)
        nx.draw_networkx_edges(
            G,
            pos,
            edge_color="gray",
            arrows=True,
            arrowsize=15,
            arrowstyle="->",
            width=1.2,
            ax=ax,
            alpha=0.7,
        )
        edge_labels = {(u, v): ",".join(d["symbols"]) for u, v, d in G.edges(data=True)}
        nx.draw_networkx_edge_labels(G, pos, edge_labels=edge_labels, font_size=7, ax=ax)
        ax.set_title(title, fontsize=12, fontweight="bold")
        ax.axis("off")

    def save(self, path: str, title: str = None) -> None:
        fig, ax = plt.subplots(figsize=(10, 8))
        try:
            self.plot(ax, title or self.automaton.name)
            fig.savefig(path, bbox_inches="tight")
        finally:
            plt.close(fig)


def plot_comparison(before: Automaton, after: Automaton, path: str) -> None:
    fig, (left, right) = plt.subplots(1, 2, figsize=(16, 8))
    try:
        AutomatonVisualizer(before).plot(left, f"{before.name} ({len(before)} states)")
        AutomatonVisualizer(after).plot(right, f"minimized ({len(after)} states)")
        fig.savefig(path, bbox_inches="tight")
    finally:
        plt.close(fig)
