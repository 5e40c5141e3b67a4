"""Kill Switches.

Process-wide emergency controls, resolved once when the dispatch
service is built and then passed by value to the components that
read them. Toggling a switch takes effect on the next start.

Switches:
- DISABLE_INFERENCE: no outbound provider calls at all; experts return
  stub analyses and routing uses the keyword fallback
- FORCE_FALLBACK_ROUTING: experts still call the provider, routing
  skips the inference-assisted decision

Backed by:
- Environment variables (FINMOE_<SWITCH>)
- AWS SSM Parameter Store (for changes without a redeploy)
"""

import logging
import os
from enum import Enum
from typing import Dict, Optional, Union

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def parse_switch(raw: str) -> Union[bool, str]:
    """Read a switch value; anything not recognisably boolean is returned as-is."""
    lowered = raw.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return raw


class ConfigSource(str, Enum):
    """Where kill switches are read from."""
    PARAMETER_STORE = "parameter_store"
    ENVIRONMENT = "environment"


class KillSwitch(str, Enum):
    """Kill switch names."""
    DISABLE_INFERENCE = "disable_inference"
    FORCE_FALLBACK_ROUTING = "force_fallback_routing"


class DynamicConfig:
    """Kill-switch lookup.

    An environment variable always wins. Otherwise the Parameter Store
    is consulted when it is the configured source, and a missing or
    unreadable parameter means the switch is off.

    Environment variables:
    - FINMOE_DISABLE_INFERENCE / FINMOE_FORCE_FALLBACK_ROUTING
    - PARAMETER_STORE_PREFIX: Parameter Store prefix (default /finmoe/)
    """

    DEFAULT_REGION = "us-east-1"

    def __init__(
        self,
        source: ConfigSource = ConfigSource.ENVIRONMENT,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
    ):
        self.source = ConfigSource(source)
        self.region = region or os.environ.get("AWS_REGION", self.DEFAULT_REGION)
        self.parameter_store_prefix = os.environ.get("PARAMETER_STORE_PREFIX", "/finmoe/")
        self.ssm_client = None

        if self.source == ConfigSource.PARAMETER_STORE:
            session = boto3.Session(profile_name=aws_profile) if aws_profile else boto3
            self.ssm_client = session.client("ssm", region_name=self.region)

        logger.info(f"Initialized DynamicConfig: source={self.source.value}, region={self.region}")

    def get(self, key: str, default=None):
        """Raw value for ``key``: environment first, then Parameter Store."""
        env_value = os.environ.get(f"FINMOE_{key.upper()}")
        if env_value is not None:
            return parse_switch(env_value)

        if self.ssm_client is not None:
            stored = self._read_parameter(key)
            if stored is not None:
                return stored
        return default

    def is_enabled(self, kill_switch: KillSwitch) -> bool:
        return self.get(kill_switch.value, False) is True

    def snapshot(self) -> Dict[str, bool]:
        """Resolve every kill switch once."""
        switches = {switch.value: self.is_enabled(switch) for switch in KillSwitch}
        active = [name for name, on in switches.items() if on]
        if active:
            logger.warning(f"Kill switches active: {', '.join(active)}")
        return switches

    def _read_parameter(self, key: str):
        name = f"{self.parameter_store_prefix}{key}"
        try:
            response = self.ssm_client.get_parameter(Name=name, WithDecryption=True)
        except self.ssm_client.exceptions.ParameterNotFound:
            return None
        except ClientError as e:
            logger.warning(f"Could not read {name}, treating switch as off: {e}")
            return None
        return parse_switch(response["Parameter"]["Value"])
