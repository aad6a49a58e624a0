"""Mermaid flowchart of an agent, its tools and the agents it wraps."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from ..hooks import HookEvent
from ..types import Tool, ToolSchema

if TYPE_CHECKING:
    from ..agent.base import BaseAgent

_MAX_LABEL = 45

_STYLES = [
    "    %% Styling",
    "    classDef agent fill:#8CF0DC,stroke:#1B2E40,stroke-width:3px,color:#1B2E40",
    "    classDef tool fill:#FFD7D7,stroke:#3C3CAF,stroke-width:2px,color:#1B2E40",
    "    classDef schema fill:#F8F8F8,stroke:#3C3CAF,stroke-width:2px,color:#1B2E40",
    "    classDef hook fill:#FFB186,stroke:#3C3CAF,stroke-width:2px,color:#1B2E40",
    "    classDef provider fill:#8CECF2,stroke:#1B2E40,stroke-width:2px,color:#1B2E40",
]


def sanitize_id(name: str) -> str:
    return re.sub(r"[()]", "", re.sub(r"[\s.\-]", "_", name))


def sanitize_label(text: str) -> str:
    cleaned = text.replace('"', "'").replace("\n", " ").replace("`", "")
    cleaned = cleaned.split(".")[0].strip() or cleaned.strip()
    if len(cleaned) > _MAX_LABEL:
        cleaned = cleaned[: _MAX_LABEL - 3] + "..."
    return cleaned


def schema_name(schema: ToolSchema | None) -> str:
    if schema is None:
        return "N/A"
    fields = getattr(schema, "field_names", lambda: [])()
    if fields:
        shown = ", ".join(fields[:3])
        return f"{{{shown}...}}" if len(fields) > 3 else f"{{{shown}}}"
    return getattr(schema, "name", None) or "Any"


def tool_parameters(schema: ToolSchema | None) -> list[str]:
    if schema is None:
        return []
    properties = schema.to_json_schema().get("properties", {})
    params = []
    for key, spec in properties.items():
        kind = spec.get("type") if isinstance(spec, dict) else None
        params.append(f"{key}: {kind}" if kind else key)
    return params


def _tool_node(agent_id: str, tool: Tool, suffix: str = "") -> list[str]:
    tool_id = sanitize_id(f"{agent_id}_{tool.name}")
    label = f"⚙️ {sanitize_label(tool.name)}"
    if tool.description:
        label += f"<br/><i>{sanitize_label(tool.description)}</i>"
    params = tool_parameters(tool.input_schema)
    if params:
        shown = ", ".join(params[:3])
        label += f"<br/>({shown}...)" if len(params) > 3 else f"<br/>({shown})"
    if suffix:
        label += f"<br/>({suffix})"
    return [f'    {tool_id}["{label}"]:::tool', f"    {agent_id} --> {tool_id}"]


def _render(
    agent: BaseAgent, lines: list[str], visited: set[int], include_provider_tools: bool
) -> None:
    if id(agent) in visited:
        return
    visited.add(id(agent))

    agent_id = sanitize_id(agent.name)
    label = f"🤖 {agent.name}"
    if agent.description and agent.description not in (agent.name, f"Agent: {agent.name}"):
        label += f"<br/><i>{sanitize_label(agent.description)}</i>"
    label += f"<br/>In: {schema_name(agent.input_schema)} | Out: {schema_name(agent.output_schema)}"
    lines.append(f'    {agent_id}["{label}"]:::agent')

    hooks = [event.value for event in HookEvent if agent.hooks.listener_count(event) > 0]
    if hooks:
        hook_label = ", ".join(hooks[:3])
        if len(hooks) > 3:
            hook_label += f" +{len(hooks) - 3}"
        lines.append(f'    {agent_id}_hooks["🪝 {hook_label}"]:::hook')
        lines.append(f"    {agent_id} -.-> {agent_id}_hooks")

    nested: list[BaseAgent] = []
    by_provider: dict[str, list[Tool]] = {}
    for tool in agent.get_tools():
        if tool.agent is not None:
            nested.append(tool.agent)
        elif "provider" in tool.metadata:
            by_provider.setdefault(str(tool.metadata["provider"]), []).append(tool)
        else:
            lines.extend(_tool_node(agent_id, tool))

    for provider in agent.tool_providers:
        by_provider.setdefault(provider.name, [])

    for provider_name, provided in by_provider.items():
        if include_provider_tools and provided:
            for tool in provided:
                lines.extend(_tool_node(agent_id, tool, suffix=sanitize_label(provider_name)))
        else:
            provider_id = sanitize_id(f"{agent_id}_provider_{provider_name}")
            lines.append(f'    {provider_id}["🔌 {provider_name}"]:::provider')
            lines.append(f"    {agent_id} --> {provider_id}")

    for sub_agent in nested:
        lines.append(f"    {agent_id} --> {sanitize_id(sub_agent.name)}")
        _render(sub_agent, lines, visited, include_provider_tools)


def generate_flow_diagram(
    agent: BaseAgent,
    output_path: str | Path | None = None,
    include_provider_tools: bool = False,
) -> str:
    """
    Render ``agent`` as a Mermaid ``graph TB`` block.

    Agents reachable through ``as_tool`` are drawn once each, so cyclic
    compositions terminate. With ``output_path`` the diagram is written to a
    markdown file and the file path is returned instead.
    """
    lines = ["```mermaid", "graph TB"]
    _render(agent, lines, set(), include_provider_tools)
    lines.append("")
    lines.extend(_STYLES)
    lines.append("```")
    diagram = "\n".join(lines)

    if output_path is None:
        return diagram

    path = Path(output_path)
    if path.suffix != ".md":
        path = path.with_name(path.name + ".md")
    path.write_text(f"# Agent Flow: {agent.name}\n\n{diagram}", encoding="utf-8")
    return str(path)
