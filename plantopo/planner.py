import ipaddress
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from loguru import logger

# Every derived subnet is a fixed /24 inside the first two octets of the VPC block.
SUBNET_PREFIX = 24

# Private subnets start at this third-octet value by default, leaving 0..99 for public subnets.
PRIVATE_OCTET_OFFSET = 100

DEFAULT_ROUTE = "0.0.0.0/0"


class TopologyError(ValueError):
    """Base for every planning failure."""


class InvalidCidrError(TopologyError):
    pass


class InsufficientZonesError(TopologyError):
    pass


class SubnetLayoutError(TopologyError):
    """Derived subnets would collide or run past the third octet."""


class InvalidRequestError(TopologyError):
    pass


class SubnetKind(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


class RouteTarget(str, Enum):
    INTERNET_GATEWAY = "internet_gateway"
    NAT_GATEWAY = "nat_gateway"
    NONE = "none"


@dataclass(frozen=True)
class TopologyRequest:
    """High-level description of the network to plan."""

    cidr_block: str
    az_count: int
    public_subnet_count: int
    private_subnet_count: int
    nat_per_private_subnet: bool = False
    tags: dict[str, str] = field(default_factory=dict)
    name: str = "vpc"

    def __post_init__(self):
        if not isinstance(self.tags, Mapping):
            raise InvalidRequestError(f"tags must be a mapping, got {self.tags!r}")

        for attr in ("az_count", "public_subnet_count", "private_subnet_count"):
            value = getattr(self, attr)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidRequestError(
                    f"{attr} must be a non-negative integer, got {value!r}"
                )

        for k, v in self.tags.items():
            if not isinstance(k, str) or not isinstance(v, str):
                raise InvalidRequestError(
                    f"tags must map strings to strings, got {k!r}: {v!r}"
                )

        # own copy so later changes to the caller's dict don't leak into the plan
        object.__setattr__(self, "tags", dict(self.tags))

    def to_dict(self) -> dict:
        return dict(
            name=self.name,
            cidr_block=self.cidr_block,
            az_count=self.az_count,
            public_subnet_count=self.public_subnet_count,
            private_subnet_count=self.private_subnet_count,
            nat_per_private_subnet=self.nat_per_private_subnet,
            tags=dict(sorted(self.tags.items())),
        )

    @classmethod
    def from_dict(cls, data: dict) -> "TopologyRequest":
        return cls(**data)


@dataclass(frozen=True)
class SubnetPlan:
    index: int
    kind: SubnetKind
    zone: str
    cidr: str

    @property
    def has_public_ip(self) -> bool:
        return self.kind is SubnetKind.PUBLIC

    def to_dict(self) -> dict:
        return dict(
            index=self.index,
            kind=self.kind.value,
            zone=self.zone,
            cidr=self.cidr,
            has_public_ip=self.has_public_ip,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "SubnetPlan":
        # has_public_ip is derived from kind
        return cls(
            index=data["index"],
            kind=SubnetKind(data["kind"]),
            zone=data["zone"],
            cidr=data["cidr"],
        )


@dataclass(frozen=True)
class NatGatewayPlan:
    index: int
    attached_public_subnet_index: int

    def to_dict(self) -> dict:
        return dict(
            index=self.index,
            attached_public_subnet_index=self.attached_public_subnet_index,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "NatGatewayPlan":
        return cls(**data)


@dataclass(frozen=True)
class RouteAssignment:
    """Default route for one subnet.

    Public subnets always point at the internet gateway. Private subnets point at
    `nat_gateway_index`, or have no default route at all (target NONE).
    """

    subnet_kind: SubnetKind
    subnet_index: int
    target: RouteTarget
    nat_gateway_index: Optional[int] = None
    destination: str = DEFAULT_ROUTE

    @property
    def is_isolated(self) -> bool:
        return self.target is RouteTarget.NONE

    def to_dict(self) -> dict:
        return dict(
            subnet_kind=self.subnet_kind.value,
            subnet_index=self.subnet_index,
            destination=self.destination,
            target=self.target.value,
            nat_gateway_index=self.nat_gateway_index,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "RouteAssignment":
        return cls(
            subnet_kind=SubnetKind(data["subnet_kind"]),
            subnet_index=data["subnet_index"],
            target=RouteTarget(data["target"]),
            nat_gateway_index=data["nat_gateway_index"],
            destination=data["destination"],
        )


@dataclass(frozen=True)
class NetworkPlan:
    request: TopologyRequest
    zones: tuple[str, ...]
    usable_azs: int
    private_octet_offset: int
    subnets: tuple[SubnetPlan, ...]
    nat_gateways: tuple[NatGatewayPlan, ...]
    routes: tuple[RouteAssignment, ...]

    @property
    def public_subnets(self) -> list[SubnetPlan]:
        return [s for s in self.subnets if s.kind is SubnetKind.PUBLIC]

    @property
    def private_subnets(self) -> list[SubnetPlan]:
        return [s for s in self.subnets if s.kind is SubnetKind.PRIVATE]

    @property
    def isolated_subnets(self) -> list[SubnetPlan]:
        return [s for s in self.subnets if self.route_for(s).is_isolated]

    def route_for(self, subnet: SubnetPlan) -> RouteAssignment:
        for route in self.routes:
            if route.subnet_kind is subnet.kind and route.subnet_index == subnet.index:
                return route

        raise KeyError(f"No route assignment for {subnet.kind.value} subnet {subnet.index}")

    def to_dict(self) -> dict:
        return dict(
            request=self.request.to_dict(),
            zones=list(self.zones),
            usable_azs=self.usable_azs,
            private_octet_offset=self.private_octet_offset,
            subnets=[s.to_dict() for s in self.subnets],
            nat_gateways=[n.to_dict() for n in self.nat_gateways],
            routes=[r.to_dict() for r in self.routes],
        )

    def to_json(self) -> str:
        """Serialized form written to the plan file. Identical plans give identical text."""
        return json.dumps(self.to_dict(), indent=4)

    @classmethod
    def from_dict(cls, data: dict) -> "NetworkPlan":
        """Rebuild a plan saved with `to_json`."""
        return cls(
            request=TopologyRequest.from_dict(data["request"]),
            zones=tuple(data["zones"]),
            usable_azs=data["usable_azs"],
            private_octet_offset=data["private_octet_offset"],
            subnets=tuple(SubnetPlan.from_dict(s) for s in data["subnets"]),
            nat_gateways=tuple(NatGatewayPlan.from_dict(n) for n in data["nat_gateways"]),
            routes=tuple(RouteAssignment.from_dict(r) for r in data["routes"]),
        )


def cidr_prefix_base(cidr_block: str) -> tuple[int, int]:
    """Return the first two octets of an IPv4 CIDR block with room for /24 subnets."""
    try:
        network = ipaddress.IPv4Network(cidr_block, strict=False)
    except (ValueError, TypeError) as e:
        raise InvalidCidrError(f"Not a valid IPv4 CIDR block: {cidr_block!r}") from e

    if "/" not in str(cidr_block):
        raise InvalidCidrError(f"CIDR block {cidr_block!r} is missing a prefix length")

    # Subnets are carved as a.b.X.0/24, so the parent must span the whole third octet.
    if network.prefixlen > 16:
        raise InvalidCidrError(
            f"CIDR block {cidr_block!r} must be /16 or larger (got /{network.prefixlen})"
        )

    # octets come from the block as written, not from the masked network address
    a, b = ipaddress.IPv4Address(str(cidr_block).split("/")[0]).packed[:2]
    return a, b


def subnet_cidr(
    prefix_base: tuple[int, int],
    kind: SubnetKind,
    index: int,
    private_octet_offset: int = PRIVATE_OCTET_OFFSET,
) -> str:
    a, b = prefix_base
    third = index if kind is SubnetKind.PUBLIC else private_octet_offset + index
    return str(ipaddress.IPv4Network((f"{a}.{b}.{third}.0", SUBNET_PREFIX)))


def resolve_counts(
    az_count: int, public_subnets: int, private_subnets: int, zone_count: int
) -> tuple[int, int, int]:
    """Clamp requested counts to the zones we can actually use.

    Returns (usable_azs, public_count, private_count).
    """
    usable_azs = min(zone_count, az_count)
    return (
        usable_azs,
        min(public_subnets, usable_azs),
        min(private_subnets, usable_azs),
    )


def place_nat_gateways(
    public_count: int, private_count: int, nat_per_private_subnet: bool
) -> list[NatGatewayPlan]:
    nat_gateways = []
    for i in range(public_count):
        # Only create as many NAT gateways as there are private subnets (or just one)
        if i < private_count and (nat_per_private_subnet or i == 0):
            nat_gateways.append(
                NatGatewayPlan(index=len(nat_gateways), attached_public_subnet_index=i)
            )

    return nat_gateways


def assign_private_route(
    index: int, nat_gateways: list[NatGatewayPlan], nat_per_private_subnet: bool
) -> RouteAssignment:
    nat_index = index if nat_per_private_subnet else 0
    if nat_index < len(nat_gateways):
        return RouteAssignment(
            subnet_kind=SubnetKind.PRIVATE,
            subnet_index=index,
            target=RouteTarget.NAT_GATEWAY,
            nat_gateway_index=nat_index,
        )

    return RouteAssignment(
        subnet_kind=SubnetKind.PRIVATE, subnet_index=index, target=RouteTarget.NONE
    )


def _check_layout(public_count: int, private_count: int, private_octet_offset: int):
    if not 1 <= private_octet_offset <= 255:
        raise SubnetLayoutError(
            f"private_octet_offset must be between 1 and 255, got {private_octet_offset}"
        )

    if public_count > private_octet_offset:
        raise SubnetLayoutError(
            f"{public_count} public subnets would overlap private subnets starting at octet {private_octet_offset}"
        )

    if private_octet_offset + private_count > 256:
        raise SubnetLayoutError(
            f"{private_count} private subnets starting at octet {private_octet_offset} overflow the third octet"
        )


def plan_topology(
    request: TopologyRequest,
    zones: list[str],
    private_octet_offset: int = PRIVATE_OCTET_OFFSET,
) -> NetworkPlan:
    """Resolve a request and an ordered zone list into a complete network plan.

    Counts larger than the usable zones are clamped, and private subnets without an
    eligible NAT gateway are left isolated; neither raises. Only an empty zone list,
    an unusable CIDR block, or an impossible octet layout is fatal.
    """
    zones = tuple(zones)
    if not zones:
        raise InsufficientZonesError("No availability zones available for planning")

    prefix_base = cidr_prefix_base(request.cidr_block)

    usable_azs, public_count, private_count = resolve_counts(
        request.az_count,
        request.public_subnet_count,
        request.private_subnet_count,
        len(zones),
    )

    _check_layout(public_count, private_count, private_octet_offset)

    if public_count < request.public_subnet_count:
        logger.warning(
            "[{}] Clamped public subnets from {} to {} (usable AZs: {})",
            request.name,
            request.public_subnet_count,
            public_count,
            usable_azs,
        )

    if private_count < request.private_subnet_count:
        logger.warning(
            "[{}] Clamped private subnets from {} to {} (usable AZs: {})",
            request.name,
            request.private_subnet_count,
            private_count,
            usable_azs,
        )

    subnets = []
    routes = []

    for i in range(public_count):
        subnets.append(
            SubnetPlan(
                index=i,
                kind=SubnetKind.PUBLIC,
                zone=zones[i % usable_azs],
                cidr=subnet_cidr(prefix_base, SubnetKind.PUBLIC, i),
            )
        )
        routes.append(
            RouteAssignment(
                subnet_kind=SubnetKind.PUBLIC,
                subnet_index=i,
                target=RouteTarget.INTERNET_GATEWAY,
            )
        )

    nat_gateways = place_nat_gateways(
        public_count, private_count, request.nat_per_private_subnet
    )

    for i in range(private_count):
        subnets.append(
            SubnetPlan(
                index=i,
                kind=SubnetKind.PRIVATE,
                zone=zones[i % usable_azs],
                cidr=subnet_cidr(
                    prefix_base, SubnetKind.PRIVATE, i, private_octet_offset
                ),
            )
        )

        route = assign_private_route(i, nat_gateways, request.nat_per_private_subnet)
        if route.is_isolated:
            logger.warning(
                "[{}] Private subnet {} has no NAT gateway and will have no default route",
                request.name,
                i + 1,
            )

        routes.append(route)

    return NetworkPlan(
        request=request,
        zones=zones,
        usable_azs=usable_azs,
        private_octet_offset=private_octet_offset,
        subnets=tuple(subnets),
        nat_gateways=tuple(nat_gateways),
        routes=tuple(routes),
    )
