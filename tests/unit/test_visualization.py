"""Mermaid diagrams and the rich console tracer."""

import pytest
from pydantic import BaseModel
from rich.console import Console

from shuttle import HookEvent, define_tool
from shuttle.tools import PydanticSchema
from shuttle.visualization import ConsoleTracer, generate_flow_diagram
from shuttle.visualization.mermaid import sanitize_id, sanitize_label, schema_name
from tests.conftest import decision, tool_call


class Query(BaseModel):
    text: str
    limit: int


class Report(BaseModel):
    title: str
    body: str
    sources: list[str]
    score: float


class TestMermaidHelpers:
    def test_sanitize_id(self):
        assert sanitize_id("web search (v2).beta") == "web_search_v2_beta"

    def test_sanitize_label_keeps_first_sentence(self):
        assert sanitize_label('Finds "things". Then more.') == "Finds 'things'"
        assert len(sanitize_label("x" * 80)) == 45

    def test_schema_name(self):
        assert schema_name(None) == "N/A"
        assert schema_name(PydanticSchema(Query)) == "{text, limit}"
        assert schema_name(PydanticSchema(Report)) == "{title, body, sources...}"


class TestFlowDiagram:
    def test_agent_tools_and_schemas(self, make_agent):
        agent = make_agent(
            description="Answers questions. Uses tools.",
            input_schema=Query,
            tools=[define_tool("search", lambda a, c: a, "Search the web", Query)],
        )
        agent.on(HookEvent.AGENT_START, print)
        diagram = agent.visualize_flow()

        assert diagram.startswith("```mermaid\ngraph TB")
        assert diagram.rstrip().endswith("```")
        assert "🤖 assistant<br/><i>Answers questions</i>" in diagram
        assert "In: {text, limit} | Out: N/A" in diagram
        assert 'assistant_search["⚙️ search<br/><i>Search the web</i><br/>(text: string, limit: integer)"]:::tool' in diagram
        assert "assistant -.-> assistant_hooks" in diagram
        assert "classDef agent" in diagram

    def test_cyclic_agents_are_drawn_once(self, make_agent):
        first = make_agent("first")
        second = make_agent("second")
        first.add_tool(second.as_tool())
        second.add_tool(first.as_tool())

        diagram = generate_flow_diagram(first)
        assert diagram.count('    first["') == 1
        assert diagram.count('    second["') == 1
        assert "first --> second" in diagram
        assert "second --> first" in diagram

    def test_provider_tools(self, make_agent):
        agent = make_agent(
            tools=[define_tool("lookup", lambda a, c: a, metadata={"provider": "docs"})]
        )
        collapsed = generate_flow_diagram(agent)
        assert '🔌 docs"]:::provider' in collapsed
        assert "lookup" not in collapsed

        expanded = generate_flow_diagram(agent, include_provider_tools=True)
        assert "⚙️ lookup<br/>(docs)" in expanded

    def test_save_to_markdown(self, make_agent, tmp_path):
        agent = make_agent()
        path = agent.visualize_flow(output_path=tmp_path / "flow")
        assert path.endswith("flow.md")
        content = (tmp_path / "flow.md").read_text(encoding="utf-8")
        assert content.startswith("# Agent Flow: assistant\n\n```mermaid")


class TestConsoleTracer:
    async def test_prints_trace_after_run(self, make_agent, client):
        client.responses = [
            decision("look it up", tool_calls=[tool_call("echo", {"q": "moon"})]),
            decision("done", user_message="Almost there"),
            "The moon",
        ]
        agent = make_agent(tools=[define_tool("echo", lambda a, c: a["q"])])
        console = Console(record=True, width=120)
        detach = ConsoleTracer(console=console).attach(agent)

        await agent.process("what orbits earth?")
        text = console.export_text()
        assert "Execution Trace" in text
        assert "Agent: assistant" in text
        assert "Tool: echo" in text
        assert "Almost there" in text
        assert "LLM Calls: 3" in text

        detach()
        assert agent.hooks.listener_count() == 0

    async def test_reports_failure(self, make_agent, client):
        client.responses = [RuntimeError("model down")]
        agent = make_agent()
        console = Console(record=True, width=120)
        ConsoleTracer(console=console).attach(agent)
        with pytest.raises(RuntimeError):
            await agent.process("x")
        text = console.export_text()
        assert "Error" in text
        assert "model down" in text
