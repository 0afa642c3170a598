from .planner import (
    DEFAULT_ROUTE,
    PRIVATE_OCTET_OFFSET,
    InsufficientZonesError,
    InvalidCidrError,
    InvalidRequestError,
    NatGatewayPlan,
    NetworkPlan,
    RouteAssignment,
    RouteTarget,
    SubnetKind,
    SubnetLayoutError,
    SubnetPlan,
    TopologyError,
    TopologyRequest,
    plan_topology,
)
from .render import render_terraform

__all__ = [
    "DEFAULT_ROUTE",
    "PRIVATE_OCTET_OFFSET",
    "InsufficientZonesError",
    "InvalidCidrError",
    "InvalidRequestError",
    "NatGatewayPlan",
    "NetworkPlan",
    "RouteAssignment",
    "RouteTarget",
    "SubnetKind",
    "SubnetLayoutError",
    "SubnetPlan",
    "TopologyError",
    "TopologyRequest",
    "plan_topology",
    "render_terraform",
]
