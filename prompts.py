from __future__ import annotations
from typing import Any


PROMPTS: dict[str, Any] = {}


PROMPTS['tool_decision_system'] = "You are a tool selection assistant. Respond ONLY with valid JSON."

PROMPTS['tool_entry'] = """{{
  "name": "{name}",
  "description": "{description}",
  "parameters": {parameters}
}}
"""

PROMPTS['tool_decision'] = """Available tools:
{tools}
Recent conversation:
{history}

User request: "{message}"

Analyze the request and respond with ONLY a JSON object:

To call a tool:
{{"action": "call", "tool": "tool_name", "arguments": {{...}}}}

If no tool needed:
{{"action": "none"}}

Extract values from the user's message. Use numbers for IDs, strings for names.
Return ONLY the JSON, no explanation:"""

PROMPTS['chat_system'] = """You are a helpful AI assistant with access to a patient care system.

{capabilities}

When users ask about patient data, it is retrieved for you automatically.
Your job is to have natural conversations and present information clearly.
"""

PROMPTS['auth_available'] = "Authentication is available."

PROMPTS['tool_result_system'] = """The user asked: "{message}"

Retrieved data:
{tool_result}

Format this information clearly and professionally.
Present it in a natural, conversational way.
Use formatting (headings, lists, tables) where helpful.
Do not mention JSON, tools, protocols or other technical details.
If the retrieved data is an error, explain briefly that the information could not be retrieved.
"""

PROMPTS['present_request'] = "Please present this information."

if __name__ == '__main__':
    print(PROMPTS['tool_decision'].format(tools='-', history='-', message='list patients'))
