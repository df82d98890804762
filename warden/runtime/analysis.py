"""Analysis and rendering utilities for Warden security automata."""
from __future__ import annotations

from typing import Iterable

try:
    import networkx as nx
except ModuleNotFoundError:  # pragma: no cover
    nx = None

try:
    import matplotlib.pyplot as plt
except ModuleNotFoundError:  # pragma: no cover
    plt = None

try:
    import pydot
except ModuleNotFoundError:  # pragma: no cover
    pydot = None

from ..constants import STATE_COLORS
from .automata import Automaton
from .errors import TransitionNotFound


def _require_networkx():
    if nx is None:
        raise RuntimeError("Automaton analysis requires networkx to be installed")


def automaton_graph(automaton: Automaton):
    """Return a MultiDiGraph with one edge per declared transition.

    Transitions hidden by an earlier triple for the same (state, symbol)
    are kept but marked ``shadowed``.
    """

    _require_networkx()
    graph = nx.MultiDiGraph(start=automaton.start)
    for state in sorted(automaton.states):
        graph.add_node(
            state,
            start=state == automaton.start,
            accepting=state in automaton.accepting,
        )

    seen = set()
    for order, (source, symbol, target) in enumerate(automaton.transitions):
        shadowed = (source, symbol) in seen
        seen.add((source, symbol))
        graph.add_edge(
            source, target, key=order, symbol=symbol, order=order, shadowed=shadowed
        )
    return graph


def _effective_graph(automaton):
    graph = automaton_graph(automaton)
    hidden = [(u, v, k) for u, v, k, d in graph.edges(keys=True, data=True) if d["shadowed"]]
    graph.remove_edges_from(hidden)
    return graph


def reachable_states(automaton: Automaton) -> set:
    graph = _effective_graph(automaton)
    return {automaton.start} | nx.descendants(graph, automaton.start)


def rejecting_sinks(automaton: Automaton) -> set:
    """States from which no accepting state can ever be reached again."""

    graph = _effective_graph(automaton)
    sinks = set()
    for state in graph.nodes:
        if state in automaton.accepting:
            continue
        ahead = nx.descendants(graph, state)
        if not ahead & automaton.accepting:
            sinks.add(state)
    return sinks


def missing_transitions(automaton: Automaton, alphabet: Iterable[str] | None = None):
    """(state, symbol) pairs a reachable state has no transition for."""

    symbols = sorted(automaton.alphabet if alphabet is None else set(alphabet))
    defined = {(source, symbol) for source, symbol, _ in automaton.transitions}
    return [
        (state, symbol)
        for state in sorted(reachable_states(automaton))
        for symbol in symbols
        if (state, symbol) not in defined
    ]


def explain_trace(trace: str, automaton: Automaton):
    """Return the (state, symbol, next_state) steps taken on ``trace``."""

    steps = []
    state = automaton.start
    for symbol in trace:
        nxt = automaton.step(state, symbol)
        steps.append((state, symbol, nxt))
        state = nxt
    return steps


def explain_decision(trace: str, monitors: Iterable[Automaton]):
    """Report, per installed automaton, where ``trace`` ends and whether it is accepted.

    An automaton with no move for some step is reported as not accepting,
    with ``final_state`` set to None, the steps it did take as ``path`` and
    the unmatched (state, symbol) pair as ``missing``.
    """

    report = []
    for index, automaton in enumerate(monitors):
        entry = {"monitor": index, "missing": None}
        path = []
        state = automaton.start
        try:
            for symbol in trace:
                nxt = automaton.step(state, symbol)
                path.append((state, symbol, nxt))
                state = nxt
        except TransitionNotFound as exc:
            entry.update(final_state=None, accepted=False, missing=(exc.state, exc.symbol))
        else:
            entry.update(final_state=state, accepted=state in automaton.accepting)
        entry["path"] = path
        report.append(entry)
    return report


def _state_color(automaton, state, sinks):
    if state in automaton.accepting:
        return STATE_COLORS["accepting"]
    if state in sinks:
        return STATE_COLORS["sink"]
    return STATE_COLORS["rejecting"]


def export_graphviz(automaton: Automaton, output_path):  # pragma: no cover
    """Export the automaton as a Graphviz file; the format follows the suffix."""

    if pydot is None:
        raise RuntimeError("Graphviz export requires the optional pydot dependency")

    sinks = rejecting_sinks(automaton)
    graph = pydot.Dot("warden_policy", graph_type="digraph", rankdir="LR", fontname="Helvetica")
    graph.add_node(pydot.Node("__start__", shape="point"))
    for state in sorted(automaton.states):
        graph.add_node(
            pydot.Node(
                str(state),
                label=str(state),
                shape="doublecircle" if state in automaton.accepting else "circle",
                style="filled",
                fillcolor=_state_color(automaton, state, sinks),
                fontname="Helvetica",
            )
        )
    graph.add_edge(pydot.Edge("__start__", str(automaton.start), color=STATE_COLORS["start"]))

    seen = set()
    for source, symbol, target in automaton.transitions:
        style = "dashed" if (source, symbol) in seen else "solid"
        seen.add((source, symbol))
        graph.add_edge(pydot.Edge(str(source), str(target), label=symbol, style=style))

    output_path = str(output_path)
    fmt = output_path.rsplit(".", 1)[-1] if "." in output_path else "dot"
    if fmt == "dot":
        graph.write_raw(output_path)
    else:
        graph.write(output_path, format=fmt)
    print(f"  ✓ Policy graph exported → {output_path}")
    return output_path


def visualize_automaton(automaton: Automaton, title=None):  # pragma: no cover
    """Draw the automaton with matplotlib."""

    if nx is None or plt is None:
        raise RuntimeError("Visualization requires networkx and matplotlib to be installed")

    graph = _effective_graph(automaton)
    sinks = rejecting_sinks(automaton)
    pos = nx.circular_layout(graph)
    colors = [_state_color(automaton, state, sinks) for state in graph.nodes]
    nx.draw_networkx_nodes(graph, pos, node_color=colors, node_size=900, edgecolors="#34495e")
    nx.draw_networkx_labels(graph, pos)
    nx.draw_networkx_edges(graph, pos, arrows=True, connectionstyle="arc3,rad=0.15")
    labels = {}
    for u, v, data in graph.edges(data=True):
        labels.setdefault((u, v), []).append(data["symbol"])
    nx.draw_networkx_edge_labels(
        graph, pos, edge_labels={k: ",".join(v) for k, v in labels.items()}
    )
    plt.title(title or f"Policy (start={automaton.start})")
    plt.axis("off")
    plt.show()


__all__ = [
    "automaton_graph",
    "explain_decision",
    "explain_trace",
    "export_graphviz",
    "missing_transitions",
    "reachable_states",
    "rejecting_sinks",
    "visualize_automaton",
]
