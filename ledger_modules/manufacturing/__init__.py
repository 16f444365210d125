"""
Manufacturing module: routings, work orders and step-by-step WIP costing.
"""

from ledger_modules.manufacturing.config import ManufacturingConfig
from ledger_modules.manufacturing.models import (
    MaterialInput,
    RoutingStepInput,
    StepCostView,
    StepStatus,
    StepSubmission,
    WorkOrderStatus,
)
from ledger_modules.manufacturing.orm import (
    Routing,
    RoutingStep,
    WorkCenter,
    WorkOrder,
    WorkOrderStep,
    WorkOrderStepCost,
)
from ledger_modules.manufacturing.positions import StepCosts, StepPosition, classify_step
from ledger_modules.manufacturing.service import ManufacturingService

__all__ = [
    "ManufacturingConfig",
    "ManufacturingService",
    "MaterialInput",
    "Routing",
    "RoutingStep",
    "RoutingStepInput",
    "StepCostView",
    "StepCosts",
    "StepPosition",
    "StepStatus",
    "StepSubmission",
    "WorkCenter",
    "WorkOrder",
    "WorkOrderStatus",
    "WorkOrderStep",
    "WorkOrderStepCost",
    "classify_step",
]
