"""Render a NetworkPlan as a Terraform config for the AWS provider."""

import hashlib
import json

from .planner import NetworkPlan, RouteTarget


def _quote(value: str) -> str:
    # tags are literal text, so template sequences must not reach terraform as-is
    return json.dumps(value).replace("${", "$${").replace("%{", "%%{")


def _tags(plan: NetworkPlan, name: str) -> str:
    # request tags are spread after Name so they win on collisions
    tags = {"Name": name, **plan.request.tags}
    lines = [f"        {_quote(k)} = {_quote(v)}" for k, v in tags.items()]
    return "{\n" + "\n".join(lines) + "\n    }"


def _resource(kind: str, label: str, body: str) -> str:
    return f"""
resource "{kind}" "{label}" {{
{body}
}}
"""


def render_terraform(
    plan: NetworkPlan,
    region: str = "us-east-1",
    profile: str = "default",
    source: str = "plan",
) -> str:
    """Return Terraform source declaring every resource in `plan`.

    `source` only labels the header comment. The header digest matches the
    plan file written by the builder, so identical plans render identical files.
    """
    name = plan.request.name
    digest = hashlib.sha256(plan.to_json().encode()).hexdigest()

    layout = [
        f"# Autogenerated VPC Config for {name} using {source}",
        "\n",
        f"# {source} sha256: {digest}",
        "\n",
        f"""
provider "aws" {{
    profile = "{profile}"
    region = "{region}"
}}
""",
        _resource(
            "aws_vpc",
            "vpc",
            f"""    cidr_block = "{plan.request.cidr_block}"
    enable_dns_hostnames = true
    enable_dns_support = true
    tags = {_tags(plan, name)}""",
        ),
        _resource(
            "aws_internet_gateway",
            "igw",
            f"""    vpc_id = aws_vpc.vpc.id
    tags = {_tags(plan, f"{name}-igw")}""",
        ),
        _resource(
            "aws_route_table",
            "public",
            f"""    vpc_id = aws_vpc.vpc.id
    tags = {_tags(plan, f"{name}-public-rt")}""",
        ),
        _resource(
            "aws_route",
            "public",
            """    route_table_id = aws_route_table.public.id
    destination_cidr_block = "0.0.0.0/0"
    gateway_id = aws_internet_gateway.igw.id""",
        ),
    ]

    for subnet in plan.public_subnets:
        n = subnet.index + 1
        layout.append(
            _resource(
                "aws_subnet",
                f"public_{n}",
                f"""    vpc_id = aws_vpc.vpc.id
    cidr_block = "{subnet.cidr}"
    availability_zone = "{subnet.zone}"
    map_public_ip_on_launch = true
    tags = {_tags(plan, f"{name}-public-{n}")}""",
            )
        )
        layout.append(
            _resource(
                "aws_route_table_association",
                f"public_{n}",
                f"""    subnet_id = aws_subnet.public_{n}.id
    route_table_id = aws_route_table.public.id""",
            )
        )

    # NAT resources are labelled by the public subnet they live in
    nat_labels = {}
    for nat in plan.nat_gateways:
        n = nat.attached_public_subnet_index + 1
        nat_labels[nat.index] = f"nat_{n}"
        layout.append(
            _resource(
                "aws_eip",
                f"nat_{n}",
                f"""    domain = "vpc"
    tags = {_tags(plan, f"{name}-eip-{n}")}""",
            )
        )
        layout.append(
            _resource(
                "aws_nat_gateway",
                f"nat_{n}",
                f"""    allocation_id = aws_eip.nat_{n}.id
    subnet_id = aws_subnet.public_{n}.id
    tags = {_tags(plan, f"{name}-nat-{n}")}""",
            )
        )

    for subnet in plan.private_subnets:
        n = subnet.index + 1
        layout.append(
            _resource(
                "aws_subnet",
                f"private_{n}",
                f"""    vpc_id = aws_vpc.vpc.id
    cidr_block = "{subnet.cidr}"
    availability_zone = "{subnet.zone}"
    tags = {_tags(plan, f"{name}-private-{n}")}""",
            )
        )
        layout.append(
            _resource(
                "aws_route_table",
                f"private_{n}",
                f"""    vpc_id = aws_vpc.vpc.id
    tags = {_tags(plan, f"{name}-private-rt-{n}")}""",
            )
        )
        layout.append(
            _resource(
                "aws_route_table_association",
                f"private_{n}",
                f"""    subnet_id = aws_subnet.private_{n}.id
    route_table_id = aws_route_table.private_{n}.id""",
            )
        )

        route = plan.route_for(subnet)
        if route.target is RouteTarget.NAT_GATEWAY:
            layout.append(
                _resource(
                    "aws_route",
                    f"private_{n}",
                    f"""    route_table_id = aws_route_table.private_{n}.id
    destination_cidr_block = "{route.destination}"
    nat_gateway_id = aws_nat_gateway.{nat_labels[route.nat_gateway_index]}.id""",
                )
            )

    public_ids = ", ".join(f"aws_subnet.public_{s.index + 1}.id" for s in plan.public_subnets)
    private_ids = ", ".join(
        f"aws_subnet.private_{s.index + 1}.id" for s in plan.private_subnets
    )
    nat_ids = ", ".join(
        f"aws_nat_gateway.{nat_labels[n.index]}.id" for n in plan.nat_gateways
    )

    layout.append(
        f"""
output "vpc_id" {{
    value = aws_vpc.vpc.id
}}

output "public_subnet_ids" {{
    value = [{public_ids}]
}}

output "private_subnet_ids" {{
    value = [{private_ids}]
}}

output "nat_gateway_ids" {{
    value = [{nat_ids}]
}}
"""
    )

    return "".join(layout)
