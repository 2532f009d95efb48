from abc import ABC, abstractmethod
from typing import Any, Dict


class UpstreamTransport(ABC):
    """Issues one outbound chat-completion call and returns the decoded body.

    Implementations report failures through `nim_proxy.errors`: a timeout as
    `UpstreamTimeoutError`, a broken connection as `TransportFailureError`,
    and non-2xx statuses as the matching upstream error. They never retry.
    """

    @abstractmethod
    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...
