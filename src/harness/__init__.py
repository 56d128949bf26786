"""Black-box integration harness for the session service."""
from src.harness.environment import HarnessEnvironment
from src.harness.ports import find_free_port
from src.harness.process_supervisor import ProcessSupervisor, ServiceProcess
from src.harness.protocol_client import ProtocolClient
from src.harness.token_generator import TOKEN_ALPHABET, generate_token
from src.harness.upstream_mock import StubTable, UpstreamMock

__all__ = [
    "HarnessEnvironment",
    "ProcessSupervisor",
    "ProtocolClient",
    "ServiceProcess",
    "StubTable",
    "TOKEN_ALPHABET",
    "UpstreamMock",
    "find_free_port",
    "generate_token",
]
