"""
Agent feature: LangGraph state machine for the tool-augmented answer loop.

Architecture:
  START → agent ──(final answer)──────────────→ END
            │ ↑
  (search)  ↓ │
          tools

  agent ──(step cap reached with pending calls)→ exhausted → END
  agent ──(client-declared tool called)────────→ client_handoff → END

Constraints:
  - The graph owns a step counter; at most AGENT_MAX_STEPS model calls per
    request regardless of what the model asks for.
  - Tokens are pushed to the caller through the custom stream as they arrive.
    Server-side tool steps produce no events.
"""

from typing import Annotated, Any, TypedDict
import logging

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, SystemMessage, ToolMessage, message_chunk_to_message
from langgraph.graph import StateGraph, END, START
from langgraph.graph.message import add_messages
from langgraph.types import StreamWriter

from app.config import get_settings
from app.features.agent.messages import ClientToolSpec, client_tool_definitions
from app.features.agent.prompts import EXHAUSTED_NOTICE
from app.features.knowledge.service import RetrievalService
from app.features.knowledge.tools import create_search_tool

logger = logging.getLogger(__name__)


# ── State Definition ─────────────────────────────────────
class ConversationState(TypedDict):
    """State passed through the LangGraph graph (one request only)."""
    messages: Annotated[list[BaseMessage], add_messages]
    system_prompt: str
    steps: int
    streamed_chars: int
    finish_reason: str


def content_text(content: Any) -> str:
    """Text of a message/chunk content; skips non-text parts such as thinking blocks."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = []
        for part in content:
            if isinstance(part, str):
                texts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                texts.append(part.get("text", ""))
        return "".join(texts)
    return ""


def build_conversation_graph(
    llm: BaseChatModel,
    retriever: RetrievalService,
    client_tools: dict[str, ClientToolSpec] | None = None,
    max_steps: int | None = None,
):
    """Build the answer loop graph for one request.

    Args:
        llm: Chat model; the search tool and client tools are bound to it.
        retriever: Backs the search tool.
        client_tools: Tools executed by the caller. Calling one ends the loop.
        max_steps: Model-call cap (defaults to AGENT_MAX_STEPS).

    Returns:
        Compiled graph ready to stream.
    """
    max_steps = max_steps or get_settings().AGENT_MAX_STEPS

    search_tool = create_search_tool(retriever)
    tool_map = {search_tool.name: search_tool}
    client_defs = client_tool_definitions(client_tools)
    client_tool_names = {d["function"]["name"] for d in client_defs} - set(tool_map)

    llm_with_tools = llm.bind_tools([search_tool, *client_defs])

    # ── Node: Agent (one model step) ─────────────────────
    async def agent_node(state: ConversationState, writer: StreamWriter) -> dict:
        """Stream one model response; the model either answers or calls tools."""
        messages = [SystemMessage(content=state["system_prompt"]), *state["messages"]]

        full = None
        streamed = 0
        async for chunk in llm_with_tools.astream(messages):
            text = content_text(chunk.content)
            if text:
                streamed += len(text)
                writer({"type": "message", "content": text})
            full = chunk if full is None else full + chunk

        response = message_chunk_to_message(full) if full is not None else AIMessage(content="")
        step = state["steps"] + 1
        logger.info(f"Model step {step}/{max_steps}: {len(getattr(response, 'tool_calls', []) or [])} tool calls")
        return {
            "messages": [response],
            "steps": step,
            "streamed_chars": state["streamed_chars"] + streamed,
        }

    # ── Routing: tools, hand-off, cap, or done ───────────
    def route_after_agent(state: ConversationState) -> str:
        last_message = state["messages"][-1]
        tool_calls = getattr(last_message, "tool_calls", None) or []
        if not tool_calls:
            return END
        if any(tc["name"] in client_tool_names for tc in tool_calls):
            return "client_handoff"
        if state["steps"] >= max_steps:
            return "exhausted"
        return "tools"

    # ── Node: Tools (server-side search) ─────────────────
    async def tool_node(state: ConversationState) -> dict:
        """Execute requested tools and append their results."""
        last_message = state["messages"][-1]
        results = []

        for tc in last_message.tool_calls:
            tool_fn = tool_map.get(tc["name"])
            if tool_fn is None:
                results.append(ToolMessage(
                    content=f"Tool '{tc['name']}' does not exist. Use {search_tool.name}.",
                    tool_call_id=tc["id"],
                    name=tc["name"],
                ))
                continue

            try:
                logger.info(f"Calling tool: {tc['name']} with args: {tc['args']}")
                result = await tool_fn.ainvoke(tc["args"])
            except Exception as e:
                logger.error(f"Tool {tc['name']} error: {e}")
                result = f"Tool error: {e}"

            results.append(ToolMessage(
                content=str(result),
                tool_call_id=tc["id"],
                name=tc["name"],
            ))

        return {"messages": results}

    # ── Node: Client hand-off ────────────────────────────
    def client_handoff_node(state: ConversationState, writer: StreamWriter) -> dict:
        """Forward client-tool calls to the caller, who executes them."""
        for tc in state["messages"][-1].tool_calls:
            if tc["name"] in client_tool_names:
                writer({"type": "tool_call", "id": tc["id"], "name": tc["name"], "args": tc["args"]})
        return {"finish_reason": "client_tool"}

    # ── Node: Step cap reached ───────────────────────────
    def exhausted_node(state: ConversationState, writer: StreamWriter) -> dict:
        """Stop looping; make sure the caller got at least some answer text."""
        logger.warning(f"Step cap of {max_steps} reached with pending tool calls")
        update: dict = {"finish_reason": "exhausted"}
        if state["streamed_chars"] == 0:
            writer({"type": "message", "content": EXHAUSTED_NOTICE})
            update["messages"] = [AIMessage(content=EXHAUSTED_NOTICE)]
            update["streamed_chars"] = len(EXHAUSTED_NOTICE)
        return update

    # ── Build Graph ──────────────────────────────────────
    graph = StateGraph(ConversationState)

    graph.add_node("agent", agent_node)
    graph.add_node("tools", tool_node)
    graph.add_node("client_handoff", client_handoff_node)
    graph.add_node("exhausted", exhausted_node)

    graph.add_edge(START, "agent")
    graph.add_conditional_edges(
        "agent",
        route_after_agent,
        {"tools": "tools", "client_handoff": "client_handoff", "exhausted": "exhausted", END: END},
    )
    graph.add_edge("tools", "agent")  # After tool → back to agent
    graph.add_edge("client_handoff", END)
    graph.add_edge("exhausted", END)

    return graph.compile()


def recursion_limit_for(max_steps: int) -> int:
    """Graph super-step budget: agent + tools per step, plus the closing node."""
    return 2 * max_steps + 2
