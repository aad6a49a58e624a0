"""Instruction text for the think and final-result calls."""

from __future__ import annotations

THINK_PROMPT = """You are in a Think-Act reasoning loop.

YOUR TASK:
1. Analyze the current situation
2. Decide if the goal is complete or more actions are needed
3. If more actions needed: specify tools to call
4. If goal complete: return empty tool_calls list

IMPORTANT:
- Return empty tool_calls array when task is COMPLETE
- Only use available tools
- Provide clear reasoning for each decision
- Use user_message for a short, user-facing status update"""

COMPLETION_PROMPT = """

COMPLETING THE TASK:
When the goal is fully achieved and no tool calls or memory reads are needed,
set is_complete to true and put the finished answer in final_result. The
answer must satisfy the expected output format given in output_schema, if one
is given. Otherwise leave is_complete false and final_result empty."""

MEMORY_PROMPT = """

MEMORY SYSTEM:
You have access to a persistent memory system that works across iterations.

Memory Operations:
1. READ: Add keys to memory_reads when you need to load existing entries
2. WRITE: Populate memory_updates with key-value pairs (with optional description/metadata)
   Example: memory_updates = {"favorite_color": {"value": "blue", "description": "User likes blue"}}

When to use memory:
- Save important calculations, decisions, or user preferences
- Load memory when you need information from earlier in the conversation
- Use descriptive keys like "budget_total", "user_favorite_city", etc.
- When a key appears in memory_catalog and you need its value, add it to memory_reads before continuing

The memory you write persists across all process() calls on this agent."""

FINAL_RESULT_PROMPT = """Generate the final result based on the execution history.
Follow any instructions provided for formatting and style."""

NO_INSTRUCTIONS = "No specific instructions."


def build_think_instructions(enable_memory: bool) -> str:
    instructions = THINK_PROMPT + COMPLETION_PROMPT
    if enable_memory:
        instructions += MEMORY_PROMPT
    return instructions
