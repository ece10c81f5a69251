# traceability/services/graph_builder.py

"""
GRAPH BUILDER (BACKWARD / FORWARD TRACE)

Orchestrates resolver steps into one deduplicated node/edge graph.

GUARANTEES:
- Nodes keyed by "<type>-<entity_id>": first insertion wins.
- Edges keyed by (from, to, label): duplicates collapse.
- Cycle guard: a node already expanded is never expanded again; the edge
  that reached it is still recorded.
- Hop limit (TRACE_MAX_DEPTH) adds a warning instead of failing.
- A missing entity past the start node is a dead end, not an error.
- Mass balance totals are converted to the start batch's unit; boundary
  quantities are keyed so each input / output counts once.

Pure read. Computed fresh per request.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from django.core.exceptions import ValidationError

from inventory.services.exceptions import NotFoundError
from traceability.conf import traceability_setting
from traceability.services.reconciliation import (
    MassBalance,
    compute_mass_balance,
    sum_quantities,
)
from traceability.services.resolver import (
    BACKWARD,
    DIRECTIONS,
    FORWARD,
    FollowUp,
    TraceNode,
    batch_node,
    batch_node_type,
    load_batch,
    resolve_neighbors,
)

logger = logging.getLogger(__name__)


@dataclass
class TraceResult:
    direction: str
    batch: TraceNode
    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)
    mass_balance: MassBalance | None = None
    warnings: list = field(default_factory=list)

    @property
    def node_ids(self) -> set:
        return {node.id for node in self.nodes}

    @property
    def edge_keys(self) -> set:
        return {edge.key for edge in self.edges}

    def as_dict(self) -> dict:
        data = {
            "direction": self.direction,
            "batch": self.batch.as_dict(),
            "nodes": [node.as_dict() for node in self.nodes],
            "edges": [edge.as_dict() for edge in self.edges],
            "warnings": list(self.warnings),
        }
        if self.mass_balance is not None:
            data["mass_balance"] = self.mass_balance.as_dict()
        return data


def trace(start_batch_id, direction: str = BACKWARD, *, max_depth: int | None = None) -> TraceResult:
    """
    Build the lineage graph of one StockBatch.

    Raises:
    - NotFoundError when the start batch does not exist
    - ValidationError on an unknown direction
    """
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {', '.join(DIRECTIONS)}")

    start = load_batch(getattr(start_batch_id, "pk", start_batch_id))
    limit = int(max_depth if max_depth is not None else traceability_setting("TRACE_MAX_DEPTH"))

    start_node = batch_node(start)
    nodes = {start_node.id: start_node}
    edges = {}
    inputs = {}
    outputs = {}
    warnings = []

    expanded = set()
    queue = deque([(FollowUp(batch_node_type(start), start.id), 0)])
    depth_warned = False

    while queue:
        step, depth = queue.popleft()
        if step.node_id in expanded:
            continue

        if depth > limit:
            if not depth_warned:
                warnings.append(f"Trace stopped at the hop limit ({limit}); the graph may be incomplete")
                logger.warning(
                    "Trace hop limit reached",
                    extra={"batch_code": start.batch_code, "direction": direction, "limit": limit},
                )
                depth_warned = True
            continue

        expanded.add(step.node_id)

        try:
            hood = resolve_neighbors(
                step.node_type,
                step.entity_id,
                direction=direction,
                include_dispatches=(depth == 0),
                via_rework=step.via_rework,
            )
        except NotFoundError as exc:
            logger.warning(
                "Trace dead end",
                extra={"node_id": step.node_id, "direction": direction, "error": str(exc)},
            )
            continue

        for node in hood.nodes:
            nodes.setdefault(node.id, node)
        for edge in hood.edges:
            edges.setdefault(edge.key, edge)
        for row in hood.inputs:
            inputs.setdefault(row.key, row)
        for row in hood.outputs:
            outputs.setdefault(row.key, row)

        for follow in hood.follow:
            if follow.node_id not in expanded:
                queue.append((follow, depth + 1))

    total_input = sum_quantities(((r.quantity, r.unit) for r in inputs.values()), start.unit, warnings=warnings)
    total_output = sum_quantities(((r.quantity, r.unit) for r in outputs.values()), start.unit, warnings=warnings)

    result = TraceResult(
        direction=direction,
        batch=start_node,
        nodes=list(nodes.values()),
        edges=list(edges.values()),
        mass_balance=compute_mass_balance(total_input, total_output, start.unit),
        warnings=warnings,
    )

    logger.info(
        "Trace built",
        extra={
            "batch_code": start.batch_code,
            "direction": direction,
            "nodes": len(result.nodes),
            "edges": len(result.edges),
        },
    )
    return result


def trace_backward(start_batch_id, **kwargs) -> TraceResult:
    return trace(start_batch_id, BACKWARD, **kwargs)


def trace_forward(start_batch_id, **kwargs) -> TraceResult:
    return trace(start_batch_id, FORWARD, **kwargs)
