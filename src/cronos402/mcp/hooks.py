"""Composable request/result interceptors for proxied MCP tool calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional, Protocol, Sequence, Union

from .types import CallToolRequest, MCPToolResult
from .utils import convert_mcp_result

logger = logging.getLogger(__name__)


@dataclass
class ContinueRequest:
    """Hand the (possibly rewritten) request to the next hook."""

    request: CallToolRequest
    result_type: Literal["continue"] = "continue"


@dataclass
class RespondRequest:
    """Answer the call now; later hooks and the upstream tool do not run."""

    response: MCPToolResult
    result_type: Literal["respond"] = "respond"


@dataclass
class ContinueResponse:
    """Hand the (possibly rewritten) result to the next hook."""

    response: Any
    result_type: Literal["continue"] = "continue"


RequestHookResult = Union[ContinueRequest, RespondRequest]

Forward = Callable[[CallToolRequest], Awaitable[Any]]


class Hook(Protocol):
    """An interceptor around tool calls.

    Hooks must not depend on each other's internal state, only on the request
    and result values passed along the chain.
    """

    name: str

    async def process_call_tool_request(
        self, request: CallToolRequest, extra: Optional[dict[str, Any]] = None
    ) -> RequestHookResult: ...

    async def process_call_tool_result(
        self,
        result: MCPToolResult,
        request: CallToolRequest,
        extra: Optional[dict[str, Any]] = None,
    ) -> ContinueResponse: ...


class HookChain:
    """Runs hooks in a fixed, caller-supplied order.

    The request phase stops at the first ``respond``. The result phase gives
    every hook a chance to post-process, in the same order.
    """

    def __init__(self, hooks: Sequence[Hook]):
        self.hooks = list(hooks)

    async def run_request(
        self, request: CallToolRequest, extra: Optional[dict[str, Any]] = None
    ) -> RequestHookResult:
        for hook in self.hooks:
            outcome = await hook.process_call_tool_request(request, extra)
            if outcome.result_type == "respond":
                logger.debug(f"Hook {hook.name} answered {request.name}")
                return outcome
            request = outcome.request
        return ContinueRequest(request=request)

    async def run_result(
        self,
        result: MCPToolResult,
        request: CallToolRequest,
        extra: Optional[dict[str, Any]] = None,
    ) -> MCPToolResult:
        for hook in self.hooks:
            outcome = await hook.process_call_tool_result(result, request, extra)
            result = outcome.response
        return result

    async def run_list_tools(
        self, result: Any, extra: Optional[dict[str, Any]] = None
    ) -> Any:
        for hook in self.hooks:
            process = getattr(hook, "process_list_tools_result", None)
            if process is None:
                continue
            outcome = await process(result, extra)
            result = outcome.response
        return result

    async def call_tool(
        self,
        request: CallToolRequest,
        forward: Forward,
        extra: Optional[dict[str, Any]] = None,
    ) -> MCPToolResult:
        """Run the request phase, forward upstream, then run the result phase.

        Args:
            request: Inbound tool call
            forward: Coroutine performing the real upstream call
            extra: Transport-specific context passed to every hook

        Returns:
            The post-processed result, or the short-circuit response
        """
        outcome = await self.run_request(request, extra)
        if outcome.result_type == "respond":
            return outcome.response
        request = outcome.request

        result = convert_mcp_result(await forward(request))
        return await self.run_result(result, request, extra)


class LoggingHook:
    """Logs every tool call and whether it failed."""

    name = "logging"

    def __init__(self, log: Optional[logging.Logger] = None):
        self._log = log or logger

    async def process_call_tool_request(
        self, request: CallToolRequest, extra: Optional[dict[str, Any]] = None
    ) -> ContinueRequest:
        self._log.info(f"Tool call {request.name}")
        return ContinueRequest(request=request)

    async def process_call_tool_result(
        self,
        result: MCPToolResult,
        request: CallToolRequest,
        extra: Optional[dict[str, Any]] = None,
    ) -> ContinueResponse:
        self._log.info(f"Tool result {request.name} error={result.is_error}")
        return ContinueResponse(response=result)
