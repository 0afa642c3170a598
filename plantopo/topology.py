#!/usr/bin/env python

import importlib
import json
import pathlib
import shutil
import subprocess  # for terraform fmt cleanup
from typing import Optional

import boto3
import pandas as pd
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from .planner import (
    PRIVATE_OCTET_OFFSET,
    NetworkPlan,
    TopologyError,
    TopologyRequest,
    plan_topology,
)
from .render import render_terraform

# Fallbacks when neither the command line nor the config module provides a value.
# These match the defaults of the programmatic VPC helper.
DEFAULTS = dict(
    NAME="vpc",
    CIDR_BLOCK="10.0.0.0/16",
    AZ_COUNT=2,
    PUBLIC_SUBNETS=2,
    PRIVATE_SUBNETS=2,
    NAT_PER_PRIVATE_SUBNET=False,
    TAGS={},
    PRIVATE_OCTET_OFFSET=PRIVATE_OCTET_OFFSET,
    REGION="us-east-1",
)


class TopologyBuilder:
    """Plan a single VPC (subnets, NAT gateways, routes) and render it for Terraform."""

    def __init__(
        self,
        name: str = None,
        cidr_block: str = None,
        az_count: int = None,
        public_subnets: int = None,
        private_subnets: int = None,
        nat_per_private_subnet: bool = None,
        tags: dict[str, str] = None,
        private_octet_offset: int = None,
        region: str = None,
        config_module: str = "mytopology",
        zones_cache: str = "cache.mytopology.json",
        plan_result: str = "planned.mytopology.json",
    ):
        self._establish_config(
            config_module,
            NAME=name,
            CIDR_BLOCK=cidr_block,
            AZ_COUNT=az_count,
            PUBLIC_SUBNETS=public_subnets,
            PRIVATE_SUBNETS=private_subnets,
            NAT_PER_PRIVATE_SUBNET=nat_per_private_subnet,
            TAGS=tags,
            PRIVATE_OCTET_OFFSET=private_octet_offset,
            REGION=region,
        )

        self.zones_cache = pathlib.Path(zones_cache)
        self.plan_result = pathlib.Path(plan_result)
        self.plan: Optional[NetworkPlan] = None

    def _establish_config(self, config_module: str, **overrides):
        """Process combination of command line arguments, config file settings, and defaults."""

        # Same tri-level order for every setting:
        #   - explicit argument (command line or constructor)
        #   - constant from the python config module ("mytopology.py")
        #   - DEFAULTS
        try:
            config = importlib.import_module(config_module)
        except ImportError:
            logger.info("[{}] No config module found, using defaults", config_module)
            config = None

        for setting, value in overrides.items():
            if value is None:
                value = getattr(config, setting, DEFAULTS[setting])

            setattr(self, setting, value)

        logger.info(
            "Configuring with NAME={} CIDR_BLOCK={} AZ_COUNT={} REGION={}",
            self.NAME,
            self.CIDR_BLOCK,
            self.AZ_COUNT,
            self.REGION,
        )

        logger.info(
            "Configuring with PUBLIC_SUBNETS={} PRIVATE_SUBNETS={} NAT_PER_PRIVATE_SUBNET={} PRIVATE_OCTET_OFFSET={} TAGS={}",
            self.PUBLIC_SUBNETS,
            self.PRIVATE_SUBNETS,
            self.NAT_PER_PRIVATE_SUBNET,
            self.PRIVATE_OCTET_OFFSET,
            self.TAGS,
        )

    def _load_zones(self) -> list[str]:
        """Load cached (or discover live) availability zones for the configured region."""

        # cache is: region-name => [zone names]
        cached: dict[str, list[str]] = dict()

        if self.zones_cache.is_file():
            logger.info("[{}] Loading cached zones...", self.zones_cache)
            try:
                cached = json.loads(self.zones_cache.read_text())
            except (OSError, json.JSONDecodeError):
                logger.error("Loading cache failed, will fetch live zones again.")
                cached = dict()

        if self.REGION in cached:
            return cached[self.REGION]

        logger.info("[{}] Asking for zones...", self.REGION)
        try:
            found = boto3.client(
                "ec2", region_name=self.REGION
            ).describe_availability_zones(
                Filters=[{"Name": "state", "Values": ["available"]}]
            )["AvailabilityZones"]
        except (ClientError, BotoCoreError):
            # an unreachable region plans as "no zones" and fails in the planner
            logger.warning("[{}] Failed to access!", self.REGION)
            return []

        # pandas flattens the zone records so we can just grab the column we want.
        zones = pd.json_normalize(found)
        names = sorted(zones["ZoneName"].to_list()) if "ZoneName" in zones else []

        cached[self.REGION] = names
        self.zones_cache.write_text(json.dumps(cached, indent=4))
        logger.info("Cached zones at {}", self.zones_cache)

        return names

    def build_plan(self, zones: list[str] = None):
        """Resolve zones, plan the network, and save the plan as JSON."""
        if zones is None:
            zones = self._load_zones()
        elif isinstance(zones, str):
            # a single --zones value arrives from the command line as a plain string
            zones = [zones]

        request = TopologyRequest(
            name=self.NAME,
            cidr_block=self.CIDR_BLOCK,
            az_count=self.AZ_COUNT,
            public_subnet_count=self.PUBLIC_SUBNETS,
            private_subnet_count=self.PRIVATE_SUBNETS,
            nat_per_private_subnet=self.NAT_PER_PRIVATE_SUBNET,
            tags=self.TAGS,
        )

        try:
            self.plan = plan_topology(
                request, list(zones), private_octet_offset=self.PRIVATE_OCTET_OFFSET
            )
        except TopologyError as e:
            logger.error("[{}] Planning failed: {}", self.NAME, e)
            raise

        logger.info(
            "[{}] Planned {} public, {} private subnets and {} NAT gateways across {} AZs",
            self.NAME,
            len(self.plan.public_subnets),
            len(self.plan.private_subnets),
            len(self.plan.nat_gateways),
            self.plan.usable_azs,
        )

        self.plan_result.write_text(self.plan.to_json())
        logger.info("[{}] Saved network plan", self.plan_result)

    def generate_terraform_config(
        self, profile="default", output="suggested.mytopology.tf", zones=None
    ):
        """Generate a Terraform config for the planned VPC, planning first if no saved plan exists."""
        if self.plan is None:
            if zones is None and self.plan_result.is_file():
                # a saved plan wins over planning again
                logger.info("[{}] Loading saved network plan...", self.plan_result)
                self.plan = NetworkPlan.from_dict(json.loads(self.plan_result.read_text()))
            else:
                self.build_plan(zones=zones)

        layout = render_terraform(
            self.plan, region=self.REGION, profile=profile, source=str(self.plan_result)
        )

        if shutil.which("terraform"):
            layout = subprocess.run(
                "terraform fmt -".split(),
                stdout=subprocess.PIPE,
                input=layout.encode(),
                check=True,
            ).stdout.decode()
        else:
            logger.warning("terraform not found on PATH, writing config unformatted")

        pathlib.Path(output).write_text(layout)
        logger.info("[{}] Wrote terraform plan", output)


def cmd():
    import fire

    fire.Fire(TopologyBuilder)


if __name__ == "__main__":
    cmd()
