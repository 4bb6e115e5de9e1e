"""Enclave lifecycle: status enums, request schemas, the lifecycle controller and routes."""
