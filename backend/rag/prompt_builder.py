"""
Grounded prompt construction for the answer model.

The model sees the numbered grounding context and the caller's original
question. Expansion terms never reach the prompt.
"""

from dataclasses import dataclass
from typing import List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

ASSISTANT_ROLE = (
    "You are the internal knowledge assistant for High Desert Property Management. "
    "You help property managers, leasing agents, and staff find accurate information about "
    "Oregon landlord-tenant law (ORS Chapter 90), company policies, and procedures."
)

GROUNDING_RULES = """GROUNDING:
- Answer ONLY from the numbered context below. Do not use outside knowledge.
- If the context does not answer the question, say so clearly and suggest next steps
  (company handbook, a supervisor, or legal counsel). Never guess or invent an answer.
- Never invent ORS section numbers, deadlines, or amounts that are not in the context."""

CITATION_RULES = """CITATIONS:
- Cite every factual claim with inline markers [1] through [{count}] matching the context numbers.
- Place citations immediately after the statement they support; group them as [1][2].
- Only use numbers that appear in the context."""

NO_CONTEXT_RULES = """CITATIONS:
- No passages were found for this question. Do not output any bracketed citation markers such as [1].
- Tell the user the knowledge base does not cover this question."""

RESPONSE_FORMAT = """RESPONSE FORMAT:
1. Start with a brief, direct answer.
2. Use ## headers and bullet points to organize longer answers.
3. Include section numbers, timeframes, and limits when the context gives them.
4. Add practical notes ("Important:", "Note:") where relevant."""

DOCUMENT_TASK = """YOUR TASK:
The user attached {document} for you to analyze. It is source [1] in the context.
1. Identify what the document is (tenant email, notice, complaint, lease clause).
2. Quote or reference the relevant parts of the document.
3. Explain which of the other numbered sources apply to its situation.
4. Recommend a response or action plan, noting deadlines and any need for legal counsel."""


@dataclass(frozen=True)
class Prompt:
    """System and user message for one generation call."""

    system: str
    user: str

    def to_messages(self) -> List[BaseMessage]:
        return [SystemMessage(content=self.system), HumanMessage(content=self.user)]


def build_system_prompt(source_count: int, document_name: Optional[str] = None) -> str:
    """Assemble instructions; citation rules depend on how many sources exist."""
    sections = [ASSISTANT_ROLE]
    if document_name is not None:
        sections.append(DOCUMENT_TASK.format(document=f'a document called "{document_name}"'))
    sections.append(GROUNDING_RULES)
    if source_count > 0:
        sections.append(CITATION_RULES.format(count=source_count))
    else:
        sections.append(NO_CONTEXT_RULES)
    sections.append(RESPONSE_FORMAT)
    return "\n\n".join(sections)


def build_prompt(
    question: str,
    grounding_context: str,
    source_count: int,
    document_name: Optional[str] = None
) -> Prompt:
    """
    Build the grounded prompt.

    Args:
        question: The caller's original question, never the expanded query
        grounding_context: Numbered context from retrieval, or the no-match marker
        source_count: Number of Sources, i.e. the highest valid citation ordinal
        document_name: Set when a supplementary document was attached

    Returns:
        Prompt with system and user content
    """
    user = f"Context from knowledge base:\n\n{grounding_context}\n\nQuestion: {question}"
    return Prompt(system=build_system_prompt(source_count, document_name), user=user)
