# traceability/services/resolver.py

"""
LINEAGE RESOLVER

Loads the minimal relational neighbourhood for ONE traversal step.
The graph builder calls it repeatedly; this module never recurses.

Node ids are stable composite keys: "<node_type>-<entity_id>".

Backward (product → origins):
- StockBatch:      dispatches → Customer ("Dispatched"), only when asked
                   production provenance → ProductionBatch ("Output", or
                   "Rework Output" when reached through a rework input)
                   delivery provenance → Supplier ("Supplied")
- ProductionBatch: every input → source StockBatch ("Input" / "Rework Input")

Forward (material → destinations):
- StockBatch:      dispatches → Customer ("Dispatched")
                   consuming inputs → ProductionBatch ("Input" / "Rework Input")
- ProductionBatch: output StockBatches ("Output")

Pure read. Raises NotFoundError when the entity does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db.models import Q

from inventory.models import DispatchRecord, StockBatch
from inventory.services.exceptions import NotFoundError
from production.models import ProductionBatch, ProductionBatchInput

BACKWARD = "backward"
FORWARD = "forward"
DIRECTIONS = (BACKWARD, FORWARD)

NODE_FINISHED_BATCH = "finished_product_batch"
NODE_RAW_BATCH = "raw_material_batch"
NODE_PRODUCTION = "production_batch"
NODE_SUPPLIER = "supplier"
NODE_CUSTOMER = "customer"

BATCH_NODE_TYPES = {NODE_FINISHED_BATCH, NODE_RAW_BATCH}

EDGE_DISPATCHED = "Dispatched"
EDGE_OUTPUT = "Output"
EDGE_REWORK_OUTPUT = "Rework Output"
EDGE_INPUT = "Input"
EDGE_REWORK_INPUT = "Rework Input"
EDGE_SUPPLIED = "Supplied"


def node_id(node_type: str, entity_id) -> str:
    return f"{node_type}-{entity_id}"


def batch_node_type(batch: StockBatch) -> str:
    return NODE_FINISHED_BATCH if batch.production_batch_id else NODE_RAW_BATCH


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass(frozen=True)
class TraceNode:
    id: str
    type: str
    label: str
    sublabel: str | None = None
    date: object = None
    quantity: Decimal | None = None
    unit: str | None = None
    allergens: tuple = ()
    status: str | None = None

    def as_dict(self) -> dict:
        data = {"id": self.id, "type": self.type, "label": self.label}
        if self.sublabel:
            data["sublabel"] = self.sublabel
        if self.date is not None:
            data["date"] = self.date.isoformat()
        if self.quantity is not None:
            data["quantity"] = self.quantity
            data["unit"] = self.unit
        if self.allergens:
            data["allergens"] = list(self.allergens)
        if self.status:
            data["status"] = self.status
        return data


@dataclass(frozen=True)
class TraceEdge:
    source: str
    target: str
    label: str
    quantity: Decimal | None = None
    unit: str | None = None

    @property
    def key(self) -> tuple:
        return (self.source, self.target, self.label)

    def as_dict(self) -> dict:
        data = {"from": self.source, "to": self.target, "label": self.label}
        if self.quantity is not None:
            data["quantity"] = self.quantity
            data["unit"] = self.unit
        return data


@dataclass(frozen=True)
class FollowUp:
    """A neighbour the builder should expand next."""

    node_type: str
    entity_id: object
    via_rework: bool = False

    @property
    def node_id(self) -> str:
        return node_id(self.node_type, self.entity_id)


@dataclass(frozen=True)
class BoundaryQuantity:
    """A quantity crossing a production boundary (keyed so it is counted once)."""

    key: str
    quantity: Decimal
    unit: str


@dataclass
class Neighborhood:
    nodes: list = field(default_factory=list)
    edges: list = field(default_factory=list)
    follow: list = field(default_factory=list)
    inputs: list = field(default_factory=list)
    outputs: list = field(default_factory=list)


# ============================================================
# NODE FACTORIES
# ============================================================

def batch_node(batch: StockBatch) -> TraceNode:
    return TraceNode(
        id=node_id(batch_node_type(batch), batch.id),
        type=batch_node_type(batch),
        label=batch.batch_code,
        sublabel=batch.stock_item.name,
        date=batch.use_by_date or batch.best_before_date,
        quantity=batch.quantity_received,
        unit=batch.unit,
        allergens=tuple(batch.allergens or ()),
        status=batch.status,
    )


def production_node(pb: ProductionBatch) -> TraceNode:
    return TraceNode(
        id=node_id(NODE_PRODUCTION, pb.id),
        type=NODE_PRODUCTION,
        label=pb.batch_code,
        sublabel=pb.recipe_id or None,
        date=pb.production_date,
        quantity=pb.actual_quantity if pb.actual_quantity is not None else pb.planned_quantity,
        unit=pb.unit,
        allergens=tuple(pb.allergens or ()),
        status=pb.status,
    )


def supplier_node(delivery) -> TraceNode:
    supplier = delivery.supplier
    return TraceNode(
        id=node_id(NODE_SUPPLIER, supplier.id),
        type=NODE_SUPPLIER,
        label=supplier.name,
        sublabel=supplier.get_approval_status_display(),
        date=delivery.delivery_date,
    )


def customer_node_id(dispatch: DispatchRecord) -> str:
    return node_id(NODE_CUSTOMER, dispatch.customer_id or dispatch.customer_name)


def customer_node(dispatch: DispatchRecord) -> TraceNode:
    return TraceNode(
        id=customer_node_id(dispatch),
        type=NODE_CUSTOMER,
        label=dispatch.customer_name,
        date=dispatch.dispatch_date,
    )


# ============================================================
# LOADERS
# ============================================================

def load_batch(entity_id) -> StockBatch:
    try:
        return StockBatch.objects.select_related(
            "stock_item",
            "production_batch",
            "delivery_line__delivery__supplier",
        ).get(pk=entity_id)
    except (StockBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("StockBatch", entity_id)


def load_production_batch(entity_id) -> ProductionBatch:
    try:
        return ProductionBatch.objects.get(pk=entity_id)
    except (ProductionBatch.DoesNotExist, ValidationError, ValueError):
        raise NotFoundError("ProductionBatch", entity_id)


def _input_label(row: ProductionBatchInput) -> str:
    return EDGE_REWORK_INPUT if row.is_rework else EDGE_INPUT


def _add_dispatches(hood: Neighborhood, batch: StockBatch, batch_key: str) -> None:
    for dispatch in batch.dispatches.select_related("customer").all():
        customer = customer_node(dispatch)
        hood.nodes.append(customer)
        hood.edges.append(
            TraceEdge(batch_key, customer.id, EDGE_DISPATCHED, dispatch.quantity, dispatch.unit)
        )


# ============================================================
# STEP RESOLUTION
# ============================================================

def _resolve_batch_backward(batch: StockBatch, *, include_dispatches: bool, via_rework: bool) -> Neighborhood:
    hood = Neighborhood()
    me = batch_node(batch)
    hood.nodes.append(me)

    if include_dispatches:
        _add_dispatches(hood, batch, me.id)

    if batch.production_batch_id:
        pb_node = production_node(batch.production_batch)
        hood.nodes.append(pb_node)
        hood.edges.append(
            TraceEdge(
                pb_node.id,
                me.id,
                EDGE_REWORK_OUTPUT if via_rework else EDGE_OUTPUT,
                batch.quantity_received,
                batch.unit,
            )
        )
        hood.outputs.append(BoundaryQuantity(str(batch.id), batch.quantity_received, batch.unit))
        hood.follow.append(FollowUp(NODE_PRODUCTION, batch.production_batch_id))

    elif batch.delivery_line_id:
        delivery = batch.delivery_line.delivery
        supplier = supplier_node(delivery)
        hood.nodes.append(supplier)
        hood.edges.append(
            TraceEdge(supplier.id, me.id, EDGE_SUPPLIED, batch.quantity_received, batch.unit)
        )

    return hood


def _resolve_batch_forward(batch: StockBatch) -> Neighborhood:
    hood = Neighborhood()
    me = batch_node(batch)
    hood.nodes.append(me)

    _add_dispatches(hood, batch, me.id)

    consuming = (
        ProductionBatchInput.objects.filter(Q(stock_batch=batch) | Q(rework_source_batch=batch))
        .select_related("production_batch")
        .distinct()
    )
    for row in consuming:
        pb_node = production_node(row.production_batch)
        hood.nodes.append(pb_node)
        quantity = row.consumed_quantity if row.stock_batch_id == batch.id else None
        hood.edges.append(TraceEdge(me.id, pb_node.id, _input_label(row), quantity, row.unit))
        hood.follow.append(FollowUp(NODE_PRODUCTION, row.production_batch_id))

    return hood


def _resolve_production_inputs(hood: Neighborhood, pb: ProductionBatch, pb_key: str, *, follow: bool) -> None:
    rows = pb.inputs.select_related(
        "stock_batch__stock_item",
        "rework_source_batch__stock_item",
    )
    for row in rows:
        hood.inputs.append(BoundaryQuantity(str(row.id), row.consumed_quantity, row.unit))

        if not follow:
            continue

        source = batch_node(row.stock_batch)
        hood.nodes.append(source)
        hood.edges.append(TraceEdge(source.id, pb_key, _input_label(row), row.consumed_quantity, row.unit))
        hood.follow.append(FollowUp(source.type, row.stock_batch_id, via_rework=row.is_rework))

        rework_source = row.rework_source_batch
        if row.is_rework and rework_source is not None and rework_source.id != row.stock_batch_id:
            origin = batch_node(rework_source)
            hood.nodes.append(origin)
            hood.edges.append(TraceEdge(origin.id, pb_key, EDGE_REWORK_INPUT))
            hood.follow.append(FollowUp(origin.type, rework_source.id, via_rework=True))


def _resolve_production_backward(pb: ProductionBatch) -> Neighborhood:
    hood = Neighborhood()
    me = production_node(pb)
    hood.nodes.append(me)
    _resolve_production_inputs(hood, pb, me.id, follow=True)

    # sibling outputs are part of the run's yield, not loss
    for output in pb.output_batches.all():
        hood.outputs.append(BoundaryQuantity(str(output.id), output.quantity_received, output.unit))
    return hood


def _resolve_production_forward(pb: ProductionBatch) -> Neighborhood:
    hood = Neighborhood()
    me = production_node(pb)
    hood.nodes.append(me)

    # every input of a visited run counts towards the boundary, even the
    # ones that are not on the traced path
    _resolve_production_inputs(hood, pb, me.id, follow=False)

    for output in pb.output_batches.select_related("stock_item").all():
        out_node = batch_node(output)
        hood.nodes.append(out_node)
        hood.edges.append(TraceEdge(me.id, out_node.id, EDGE_OUTPUT, output.quantity_received, output.unit))
        hood.outputs.append(BoundaryQuantity(str(output.id), output.quantity_received, output.unit))
        hood.follow.append(FollowUp(out_node.type, output.id))

    return hood


def resolve_neighbors(
    node_type: str,
    entity_id,
    *,
    direction: str = BACKWARD,
    include_dispatches: bool = True,
    via_rework: bool = False,
) -> Neighborhood:
    """
    Resolve the immediate neighbourhood of one node.

    include_dispatches only matters for backward batch steps: a backward
    trace reports who received the start batch, not every ancestor's
    customers.
    """
    if direction not in DIRECTIONS:
        raise ValidationError(f"direction must be one of {DIRECTIONS}")

    if node_type in BATCH_NODE_TYPES:
        batch = load_batch(entity_id)
        if direction == BACKWARD:
            return _resolve_batch_backward(batch, include_dispatches=include_dispatches, via_rework=via_rework)
        return _resolve_batch_forward(batch)

    if node_type == NODE_PRODUCTION:
        pb = load_production_batch(entity_id)
        if direction == BACKWARD:
            return _resolve_production_backward(pb)
        return _resolve_production_forward(pb)

    # suppliers and customers are leaves
    return Neighborhood()
