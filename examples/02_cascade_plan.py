"""
Example 02: Cascade Planning

This example demonstrates diffing two versions of an entity graph into
a PersistPlan, and how cascade options gate what the plan may touch.
"""

import copy
from dataclasses import dataclass, field
from typing import Any

from row_graph import CascadeNotAllowedError, CascadePlanner, MetadataRegistry, entity


@dataclass
class Order:
    id: int | None = None
    status: str | None = None
    lines: Any = field(default_factory=list)
    customer: Any = None


@dataclass
class OrderLine:
    id: int | None = None
    sku: str | None = None
    quantity: int | None = None


@dataclass
class Customer:
    id: int | None = None
    name: str | None = None


def main():
    registry = MetadataRegistry()
    (
        entity(Order)
        .primary("id")
        .column("status")
        .one_to_many("lines", OrderLine, cascade=True)
        .many_to_one("customer", Customer)
        .register(registry)
    )
    entity(OrderLine).primary("id").column("sku").column("quantity").register(registry)
    entity(Customer).primary("id").column("name").register(registry)
    registry.build()

    planner = CascadePlanner(registry)

    print("=== Cascade Planning ===\n")

    old = Order(
        id=1,
        status="open",
        lines=[OrderLine(1, "apple", 2), OrderLine(2, "pear", 1)],
        customer=Customer(7, "Ada"),
    )

    # Edit a copy: change status, bump a quantity, drop a line, add a line
    new = copy.deepcopy(old)
    new.status = "confirmed"
    new.lines[0].quantity = 5
    new.lines = [new.lines[0], OrderLine(sku="plum", quantity=3)]

    plan = planner.plan(old, new)
    print(f"Plan: {plan.summary()}")
    for op in plan.inserts:
        print(f"  insert {op.metadata.name} {op.entity.sku}")
    for op in plan.updates:
        print(f"  update {op.metadata.name}{op.entity_id} {', '.join(op.changed_properties)}")
    for op in plan.removes:
        print(f"  remove {op.metadata.name}{op.entity_id}")
    print()

    # The customer relation has no cascade options: a new customer is refused
    new.customer = Customer(name="Grace")
    try:
        planner.plan(old, new)
    except CascadeNotAllowedError as exc:
        print(f"Refused: {exc}")

    # Removing the order cascades to its lines but leaves the customer alone
    removal = planner.plan_removal(old)
    print(f"\nRemoval plan: {removal.summary()}")


if __name__ == "__main__":
    main()
