"""
Response Prompt Builder
=======================

Builds the grounding prompt for draft generation.

Following DRY principle - all prompt logic in one place.
"""

from typing import Optional, Sequence

from autoresponder.responses.domain.entities import KnowledgeEntry, MAX_KNOWLEDGE_ENTRIES


class ResponsePromptBuilder:
    """Assembles ticket, history, knowledge and brand voice into one prompt."""

    SYSTEM_PROMPT = (
        "You are a helpful customer support agent. Provide clear, accurate, "
        "and helpful responses to customer inquiries."
    )

    @classmethod
    def get_system_prompt(cls) -> str:
        return cls.SYSTEM_PROMPT

    @classmethod
    def build_prompt(
        cls,
        subject: str,
        message: str,
        brand_voice: str,
        history: Sequence[str] = (),
        knowledge: Sequence[KnowledgeEntry] = (),
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> str:
        parts = [
            "You are an expert customer support agent with access to a knowledge base. "
            "Your role is to provide accurate, helpful, and empathetic responses to customer inquiries.",
            "",
            "## Your Guidelines:",
            f"- Respond in a {brand_voice} tone",
            "- Be clear, concise, and actionable",
            "- Use knowledge base information when available and relevant",
            "- Acknowledge limitations honestly when information is unavailable",
            "- End with a clear next step or offer for additional help",
            "",
            "## Customer Inquiry:",
            f"**Subject:** {subject}",
        ]
        if priority:
            parts.append(f"**Priority:** {priority}")
        if category:
            parts.append(f"**Category:** {category}")
        parts += ["", "**Message:**", message]

        if history:
            parts += [
                "",
                "## Conversation History:",
                "The following is the conversation so far. Use it to understand the flow "
                "and avoid repeating information.",
                "",
            ]
            parts += [f"[{i}] {turn}" for i, turn in enumerate(history, start=1)]

        parts += ["", "## Knowledge Base Information:"]
        entries = list(knowledge)[:MAX_KNOWLEDGE_ENTRIES]
        if entries:
            parts.append(
                "The following knowledge base articles may be relevant. Ground your answer in them "
                "and do not invent details they do not contain."
            )
            parts.append("")
            for i, entry in enumerate(entries, start=1):
                parts += [f"### Article {i}: {entry.title}", entry.preview, ""]
        else:
            parts.append(
                "No knowledge base articles were found for this inquiry. Give general guidance "
                "and do not invent specific details such as prices, dates or account data."
            )

        parts += [
            "",
            "## Response Requirements:",
            "1. **Accuracy**: Only use information from the knowledge base or general best practices. "
            "Never invent specific details.",
            "2. **Completeness**: Address every question in the inquiry.",
            "3. **Actionability**: Use numbered lists for multi-step instructions.",
            f"4. **Tone**: Maintain a {brand_voice} tone throughout.",
            "5. **Next Steps**: Conclude with a clear next step or an offer of further help.",
        ]
        if history:
            parts.append("6. **Context Awareness**: Reference earlier messages when relevant.")

        parts += ["", "---", "", "Generate your response now:"]
        return "\n".join(parts)
