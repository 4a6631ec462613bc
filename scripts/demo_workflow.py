#!/usr/bin/env python3
"""
Walk one order through the full production workflow.

Creates an order, assigns and completes design (with one rejection and
rework), print and delivery, validates each stage, moves the order to
stock, and prints the observed status and available actions at each step.

Usage:
    python3 scripts/demo_workflow.py                  # default config set
    python3 scripts/demo_workflow.py --config test    # in-memory SQLite
    python3 scripts/demo_workflow.py --db-url sqlite:///demo.db
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72

ADMIN, COMMERCIAL, DESIGNER, PRINTER, DRIVER = 1, 2, 3, 4, 5


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def show(service, order_id: int, label: str, actor_ids=(ADMIN,)) -> None:
    order, _ = service.get_order(order_id)
    print(f"  {label:<32} {service.observed_status(order_id).value:<36} v{order.version}")
    for actor_id in actor_ids:
        actions = service.available_actions(order_id, actor_id)
        names = ", ".join(
            a.action_type.value + (f" {a.task_type.value}" if a.task_type else "")
            for a in actions
        ) or "-"
        print(f"      user {actor_id} may: {names}")


def run(service) -> int:
    from printflow_kernel.domain.orders import OrderItem, TaskType

    banner("CREATE")
    order = service.create_order(
        COMMERCIAL,
        [
            OrderItem.panel(120, 80, ["logo", "name"], display_name="Villa Mimosa"),
            OrderItem.oneway("Vente - 06 00 00 00 00"),
        ],
        property_name="Villa Mimosa",
        zone="Nord",
    )
    show(service, order.id, "created")

    banner("DESIGN")
    design = service.assign_task(order.id, TaskType.DESIGN, DESIGNER, ADMIN).task
    show(service, order.id, "design assigned", (ADMIN, DESIGNER))
    service.complete_task(design.id, DESIGNER, b"%PDF-1.7 draft", "draft.pdf")
    show(service, order.id, "design uploaded")
    service.validate_task(design.id, False, ADMIN)
    show(service, order.id, "design rejected", (ADMIN, DESIGNER))
    service.complete_task(design.id, DESIGNER, b"%PDF-1.7 final", "final.pdf")
    service.validate_task(design.id, True, ADMIN)
    show(service, order.id, "design validated")

    for task_type, assignee in ((TaskType.PRINT, PRINTER), (TaskType.DELIVERY, DRIVER)):
        banner(task_type.value)
        task = service.assign_task(order.id, task_type, assignee, ADMIN).task
        show(service, order.id, f"{task_type.value.lower()} assigned", (ADMIN, assignee))
        service.start_task(task.id, assignee)
        service.complete_task(task.id, assignee)
        show(service, order.id, f"{task_type.value.lower()} done")
        service.validate_task(task.id, True, ADMIN)
        show(service, order.id, f"{task_type.value.lower()} validated")

    banner("STOCK")
    service.move_to_stock(order.id, ADMIN)
    show(service, order.id, "in stock")

    stats = service.dashboard_stats()
    print()
    print(f"  dashboard: new={stats.new_orders} in_progress={stats.in_progress} "
          f"completed={stats.completed}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Walk one order through design, print, delivery and stock.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", type=str, default="default",
        help="Configuration set name (default: default)",
    )
    parser.add_argument(
        "--db-url", type=str, default=None,
        help="Override the configured database URL",
    )
    args = parser.parse_args()

    from printflow_config import get_active_config
    from printflow_kernel.exceptions import PrintflowError
    from printflow_services.bootstrap import build_role_authority, build_workflow_service

    config = get_active_config(args.config)
    if args.db_url:
        config = replace(config, database=replace(config.database, url=args.db_url))

    authority = build_role_authority(config, {
        ADMIN: ["ADMINISTRATEUR"],
        COMMERCIAL: ["COMMERCIAL"],
        DESIGNER: ["DESIGNER"],
        PRINTER: ["IMPRIMEUR"],
        DRIVER: ["LOGISTIQUE"],
    })

    try:
        service = build_workflow_service(config, authority)
        return run(service)
    except PrintflowError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
