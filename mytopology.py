# ============================================================================
# Configuration File for VPC Topology Generation
# ============================================================================
# Every setting here can be overridden from the command line, e.g.:
#   plantopo --az_count=3 --nat_per_private_subnet=True generate_terraform_config
# Anything missing here (or if this file isn't importable) falls back to built-in defaults.

# Used as the "Name" tag of the VPC and as the prefix of every resource name
# (e.g. "main-public-1", "main-nat-1", "main-private-rt-2").
NAME = "main"

# The VPC block. Subnets are always carved as /24s from the first two octets,
# so this must be a /16 (or larger) for the derived subnets to fit inside it.
CIDR_BLOCK = "10.0.0.0/16"

# Region to discover availability zones in and to provision into.
REGION = "us-east-1"

# How many availability zones to spread across.
# If the region has fewer zones than this, we only use what exists.
AZ_COUNT = 2

# Subnet counts per kind. These are clamped to the usable AZ count
# (one subnet of each kind per AZ at most).
PUBLIC_SUBNETS = 2
PRIVATE_SUBNETS = 2

# NAT gateways cost money per hour AND per GB, so choose:
#   - False: one shared NAT gateway in the first public subnet for every private subnet
#       - cheaper, but an outage in that AZ removes egress for every private subnet
#   - True: one NAT gateway per private subnet, each in the matching public subnet
#       - private subnets beyond the number of public subnets get NO default route
#         (they are still reachable internally, but can't reach the internet)
NAT_PER_PRIVATE_SUBNET = False

# Third octet where private subnets start.
# Public subnet i is X.Y.i.0/24 and private subnet i is X.Y.(PRIVATE_OCTET_OFFSET + i).0/24,
# so this also caps the number of public subnets you can ever have.
# Note: changing this after provisioning will re-create every private subnet.
PRIVATE_OCTET_OFFSET = 100

# Extra tags applied to every resource (merged after "Name", so a "Name" here wins).
TAGS = {
    "ManagedBy": "plantopo",
}
