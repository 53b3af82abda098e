"""Queue consumers for assembly and deployment."""

from .assembly import AssemblyWorker
from .consumer import StreamConsumer
from .deploy_consumer import DeployConsumer

__all__ = ["AssemblyWorker", "DeployConsumer", "StreamConsumer"]
