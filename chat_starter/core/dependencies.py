"""
Service container: every provider client the API needs, built once per app.

Routes read it from app.state; tests build one from stub providers.
"""

from dataclasses import dataclass, field

from fastapi import Request

from chat_starter.agent.graph import Agent
from chat_starter.agent.llm import ChatModel
from chat_starter.agent.prompts import AGENT_SYSTEM_TEMPLATE, RETRIEVAL_AGENT_SYSTEM_TEMPLATE
from chat_starter.agent.tools import Tool, calculator_tool, search_documents_tool, web_search_tool
from chat_starter.core.config import Settings
from chat_starter.services.embeddings import Embeddings, build_embeddings
from chat_starter.services.rag_chain import ConversationalRetrievalChain
from chat_starter.services.retrieval_service import Retriever
from chat_starter.services.vector_store import VectorStore, build_vector_store


@dataclass
class Services:
    settings: Settings
    llm: ChatModel
    embeddings: Embeddings
    vector_store: VectorStore
    # Tools for the general agent; defaults to calculator (+ web search when enabled)
    agent_tools: list[Tool] = field(default_factory=list)

    def retriever(self) -> Retriever:
        return Retriever(self.embeddings, self.vector_store, k=self.settings.retrieval_k)

    def retrieval_chain(self) -> ConversationalRetrievalChain:
        return ConversationalRetrievalChain(self.llm, self.retriever(), temperature=self.settings.chat_temperature)

    def agent(self) -> Agent:
        return Agent(
            self.llm,
            self.agent_tools,
            system_prompt=AGENT_SYSTEM_TEMPLATE,
            max_iterations=self.settings.agent_max_iterations,
            temperature=self.settings.agent_temperature,
        )

    def retrieval_agent(self) -> Agent:
        return Agent(
            self.llm,
            [search_documents_tool(self.retriever())],
            system_prompt=RETRIEVAL_AGENT_SYSTEM_TEMPLATE,
            max_iterations=self.settings.agent_max_iterations,
            temperature=self.settings.agent_temperature,
        )


def default_agent_tools(settings: Settings) -> list[Tool]:
    tools = [calculator_tool()]
    if settings.web_search_enabled:
        tools.append(web_search_tool(settings))
    return tools


def build_services(settings: Settings) -> Services:
    """Construct the real provider clients named by settings."""
    return Services(
        settings=settings,
        llm=ChatModel(settings),
        embeddings=build_embeddings(settings),
        vector_store=build_vector_store(settings),
        agent_tools=default_agent_tools(settings),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency."""
    return request.app.state.services
