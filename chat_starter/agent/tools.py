"""
Agent tools: definitions and execution for tool-calling agents.

Tools: calculator, web_search (ddgs), search_documents (retriever-backed; retrieval agent only).
Each tool returns a string observation for the model; tool-level failures are
reported in that string so the model can react, never raised into the graph.
"""

import ast
import asyncio
import logging
import operator
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from chat_starter.core.config import Settings
from chat_starter.services.retrieval_service import Retriever

logger = logging.getLogger(__name__)


@dataclass
class Tool:
    name: str
    description: str
    parameters: dict[str, Any]
    func: Callable[[dict[str, Any]], Awaitable[str]]

    def to_openai(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}
MAX_EXPONENT = 100
MAX_RESULT_DIGITS = 1000


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("exponent too large")
        if isinstance(node.op, ast.Pow) and isinstance(left, int) and left.bit_length() * abs(right) > 4 * MAX_RESULT_DIGITS:
            raise ValueError("result too large")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ValueError("only numbers and + - * / // % ** ( ) allowed")


def safe_calculator(expression: str) -> str:
    """Evaluate an arithmetic expression without eval()."""
    expr = (expression or "").strip()
    if not expr:
        return "Error: empty expression"
    try:
        result = _eval_node(ast.parse(expr, mode="eval"))
        if isinstance(result, float) and result.is_integer():
            result = int(result)
        # Approximate digit count; also keeps str() under the int conversion limit
        if isinstance(result, int) and result.bit_length() * 0.30103 > MAX_RESULT_DIGITS:
            raise ValueError("result too large")
        return str(result)
    except ZeroDivisionError:
        return "Error: division by zero"
    except OverflowError:
        return "Error: result out of range"
    except (SyntaxError, ValueError) as e:
        return f"Error: {e}"


async def _calculator(args: dict[str, Any]) -> str:
    return safe_calculator(str(args.get("expression") or args.get("input") or ""))


def _web_search_impl(query: str, max_results: int, timeout: float) -> str:
    """Run web search using ddgs. Blocking; call from a worker thread."""
    from ddgs import DDGS

    q = (query or "").strip()
    if not q:
        return "Error: empty query"
    try:
        results = list(DDGS(timeout=int(timeout)).text(q, max_results=max_results))
    except Exception as e:
        logger.warning("[tools] web_search failed: %s", e)
        return f"Web search failed: {e}"
    if not results:
        return "No results found."
    lines = []
    for i, r in enumerate(results[:max_results], 1):
        title = (r.get("title") or "").strip()
        body = (r.get("body") or "").strip()
        href = (r.get("href") or "").strip()
        lines.append(f"{i}. {title}\n{body}\nURL: {href}")
    return "\n\n".join(lines)


def calculator_tool() -> Tool:
    return Tool(
        name="calculator",
        description="Evaluate a math expression. Use for numeric calculations (e.g. 2+3*4, 100/5, 2**10).",
        parameters={
            "type": "object",
            "properties": {
                "expression": {
                    "type": "string",
                    "description": "Math expression to evaluate (e.g. 2+3*4)",
                }
            },
            "required": ["expression"],
        },
        func=_calculator,
    )


def web_search_tool(settings: Settings) -> Tool:
    async def _search(args: dict[str, Any]) -> str:
        query = str(args.get("query") or "")
        return await asyncio.to_thread(
            _web_search_impl, query, settings.web_search_max_results, settings.tools_http_timeout
        )

    return Tool(
        name="web_search",
        description="Search the web for current or external information, such as recent events or general knowledge.",
        parameters={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query for the web"},
            },
            "required": ["query"],
        },
        func=_search,
    )


def search_documents_tool(retriever: Retriever) -> Tool:
    async def _search(args: dict[str, Any]) -> str:
        query = str(args.get("query") or "").strip()
        if not query:
            return "Error: query is required."
        results = await retriever.retrieve(query)
        if not results:
            return "No matching chunks found."
        return "\n\n".join(r.content for r in results)

    return Tool(
        name="search_documents",
        description="Search the knowledge base of ingested documents and return the most relevant passages.",
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query (keywords or natural language question)",
                }
            },
            "required": ["query"],
        },
        func=_search,
    )


async def execute_tool(tools: dict[str, Tool], name: str, arguments: dict[str, Any]) -> str:
    """Execute a tool by name with the given arguments. Returns a string result for the LLM."""
    logger.info("[tools] execute_tool name=%r arguments=%r", name, arguments)
    tool = tools.get(name)
    if tool is None:
        return f"Unknown tool: {name}"
    return await tool.func(arguments or {})
