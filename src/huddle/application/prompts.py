"""Prompt templates for the language model calls."""

from jinja2 import Template

RAG_QUERY_TEMPLATE = Template(
    """Context from the team's chat history:
{% for match in matches -%}
[{{ match.metadata.sender }}]: {{ match.content }}
{% else -%}
(no relevant messages were found)
{% endfor %}
Question: {{ query }}"""
)

ANALYSIS_SYSTEM_PROMPT = """You are an expert at analyzing team conversations.
Reply with a single JSON object and nothing else, using these keys:
"summary" (string), "key_points" (list of strings), "tone" (string),
"action_items" (list of strings), "patterns" (list of strings)."""

ANALYSIS_QUERY_TEMPLATE = Template(
    """Analyze the last message of this {{ conversation_type }} conversation in #{{ conversation_name }}.

Conversation (oldest first):
{% for message in context -%}
[{{ message.sender }}]{% if message.is_chunked %} (truncated, part 1 of {{ message.total_chunks }}){% endif %}: {{ message.content }}
{% endfor %}
Related messages from earlier history:
{% for match in similar -%}
[{{ match.metadata.sender }} in {{ match.metadata.channel }}]: {{ match.content }}
{% else -%}
(none)
{% endfor %}"""
)

PERSONA_SYSTEM_PROMPT = """You are an expert at analyzing communication styles and patterns.
Create a persona description that captures:
1. Writing style and tone
2. Common topics and interests
3. Notable patterns or quirks
4. Level of formality
5. Emotional expression patterns

Keep the description concise but detailed enough to capture the essence of the person's communication style."""

PERSONA_QUERY_TEMPLATE = Template(
    """Analyze these messages from {{ username }} and create a persona description:

{% for message in messages -%}
{{ message.content }}
{% endfor %}"""
)

PERSONA_CHAT_SYSTEM_TEMPLATE = Template(
    """You are acting as {{ persona.persona_name }}. Here is a description of how you should communicate:
{{ persona.persona_description }}

Here are some example messages from this person to help you understand their style:
{% for message in messages -%}
{{ message.content }}
{% endfor %}
Respond to the user's message in a way that matches this communication style and persona.
Keep responses concise and natural, as if in a real chat conversation."""
)
