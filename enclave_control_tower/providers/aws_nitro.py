"""AWS Nitro Enclaves provider."""

import json
import re
from typing import Any, Dict, List

from .base import ConfigField, ConfigOption, Provider, ValidationResult

DOCKER_IMAGE_PATTERN = r"^[a-zA-Z0-9\.\-_/]+:[a-zA-Z0-9\.\-_]+$"
CPU_COUNTS = ["2", "4", "8", "16"]
MEMORY_SIZES_MIB = ["1024", "2048", "4096", "8192", "16384"]
INSTANCE_TYPES = [
    "m5.large",
    "m5.xlarge",
    "m5.2xlarge",
    "m5.4xlarge",
    "c5.large",
    "c5.xlarge",
    "c5.2xlarge",
]
MIN_MEMORY_PER_CPU_MIB = 512

REGION_NAMES = {
    "us-east-1": "US East (N. Virginia)",
    "us-west-2": "US West (Oregon)",
    "eu-west-1": "Europe (Ireland)",
    "eu-central-1": "Europe (Frankfurt)",
    "ap-southeast-1": "Asia Pacific (Singapore)",
    "ap-northeast-1": "Asia Pacific (Tokyo)",
}


class AwsNitroProvider(Provider):
    """Secure, isolated compute environments using AWS Nitro technology."""

    id = "aws-nitro"
    name = "AWS Nitro Enclaves"
    description = "Secure, isolated compute environments using AWS Nitro technology"
    regions = list(REGION_NAMES)
    config_schema = {
        "dockerImage": ConfigField(
            type="string",
            label="Docker Image URI",
            description="Container image to run in the enclave (e.g., hello-world:latest)",
            required=True,
            pattern=DOCKER_IMAGE_PATTERN,
        ),
        "cpuCount": ConfigField(
            type="select",
            label="CPU Count",
            required=True,
            options=[ConfigOption(value=c, label=f"{c} vCPUs") for c in CPU_COUNTS],
            default_value="2",
        ),
        "memoryMiB": ConfigField(
            type="select",
            label="Memory (MiB)",
            required=True,
            options=[ConfigOption(value=m, label=f"{m} MiB") for m in MEMORY_SIZES_MIB],
            default_value="1024",
        ),
        "instanceType": ConfigField(
            type="select",
            label="Instance Type",
            description="EC2 instance type for the parent instance",
            required=True,
            options=[ConfigOption(value=t, label=t) for t in INSTANCE_TYPES],
            default_value="m5.large",
        ),
        "enableDebug": ConfigField(
            type="boolean",
            label="Enable Debug Mode",
            description="Enable debug console access (reduces security isolation)",
            default_value=False,
        ),
        "environmentVariables": ConfigField(
            type="text",
            label="Environment Variables",
            description='Environment variables as JSON (e.g., {"API_KEY": "value"})',
        ),
    }

    def validate_config(self, config: Dict[str, Any]) -> ValidationResult:
        errors: List[str] = []

        docker_image = config.get("dockerImage")
        if not docker_image:
            errors.append("Docker image URI is required")
        elif not re.match(DOCKER_IMAGE_PATTERN, str(docker_image)):
            errors.append("Invalid Docker image URI format")

        cpu_count = config.get("cpuCount")
        if not cpu_count:
            errors.append("CPU count is required")
        elif str(cpu_count) not in CPU_COUNTS:
            errors.append("Invalid CPU count")

        memory = config.get("memoryMiB")
        if not memory:
            errors.append("Memory allocation is required")
        elif str(memory) not in MEMORY_SIZES_MIB:
            errors.append("Invalid memory allocation")

        if not config.get("instanceType"):
            errors.append("Instance type is required")

        env_vars = config.get("environmentVariables")
        if isinstance(env_vars, str) and env_vars.strip():
            try:
                json.loads(env_vars)
            except ValueError:
                errors.append("Environment variables must be valid JSON")

        if str(cpu_count or "").isdigit() and str(memory or "").isdigit():
            cpus, mib = int(cpu_count), int(memory)
            minimum = cpus * MIN_MEMORY_PER_CPU_MIB
            if mib < minimum:
                errors.append(
                    f"Memory allocation too low for {cpus} vCPUs. "
                    f"Minimum {minimum} MiB required."
                )

        return ValidationResult(is_valid=not errors, errors=errors)

    def display_name(self, region: str) -> str:
        return REGION_NAMES.get(region, region)
