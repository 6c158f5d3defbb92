"""Strategies that turn an English question into SQL text.

Three generators share the :class:`SQLGenerator` protocol:

- :class:`RuleBasedSQLGenerator` maps keywords in the question to canned
  statements and never fails.
- :class:`LLMSQLGenerator` asks an OpenAI model to write the statement from a
  schema description.
- :class:`FallbackSQLGenerator` tries a primary generator and, on failure,
  exactly one fallback.

The query engine does not care how the text was produced, so generated SQL is
returned as-is apart from trimming chat formatting.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Literal, Protocol

from src.integrations.openai_models import GPTResponseClient

LOGGER = logging.getLogger(__name__)

GenerationSource = Literal["llm", "rules"]

_CODE_FENCE_RE = re.compile(r"^```(?:sql)?\s*|\s*```$", flags=re.IGNORECASE)
_SQL_PREFIX_RE = re.compile(r"^\s*sql\s*:\s*", flags=re.IGNORECASE)


class SQLGenerationError(RuntimeError):
    """Raised when a generator cannot produce SQL for a question."""


@dataclass(frozen=True, slots=True)
class GeneratedSQL:
    statement: str
    source: GenerationSource


class SQLGenerator(Protocol):
    """Produces SQL text for a natural-language question."""

    def generate(self, question: str) -> GeneratedSQL:  # pragma: no cover - interface
        ...


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Emit ``template`` when the question contains every ``required`` keyword
    and at least one ``any_of`` keyword (when given)."""

    template: str
    required: tuple[str, ...] = ()
    any_of: tuple[str, ...] = ()

    def matches(self, lowered_question: str) -> bool:
        if not all(keyword in lowered_question for keyword in self.required):
            return False
        if self.any_of and not any(keyword in lowered_question for keyword in self.any_of):
            return False
        return True


DEFAULT_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("SELECT * FROM {table} LIMIT 100", required=("all", "data")),
    KeywordRule(
        "SELECT * FROM {table} WHERE Variable_name = 'Total income' LIMIT 50",
        required=("total income",),
    ),
    KeywordRule(
        "SELECT * FROM {table} WHERE Industry_name_NZSIOC LIKE '%Agriculture%' LIMIT 50",
        any_of=("agriculture", "farming"),
    ),
    KeywordRule(
        "SELECT * FROM {table} WHERE Variable_category = 'Financial performance' LIMIT 50",
        required=("financial performance",),
    ),
    KeywordRule(
        "SELECT * FROM {table} WHERE Variable_category = 'Employment' LIMIT 50",
        required=("employment",),
    ),
    KeywordRule(
        "SELECT Industry_name_NZSIOC, Value FROM {table} WHERE Variable_name = 'Total income' "
        "ORDER BY CAST(Value AS DECIMAL) DESC LIMIT 10",
        required=("industry", "top"),
    ),
)

DEFAULT_STATEMENT = "SELECT * FROM {table} LIMIT 20"


@dataclass(slots=True)
class RuleBasedSQLGenerator:
    """Keyword-matched templates; the first matching rule wins."""

    table_name: str = "survey_data"
    rules: tuple[KeywordRule, ...] = DEFAULT_RULES
    default_statement: str = DEFAULT_STATEMENT

    def generate(self, question: str) -> GeneratedSQL:
        lowered = (question or "").lower()
        template = self.default_statement
        for rule in self.rules:
            if rule.matches(lowered):
                template = rule.template
                break
        return GeneratedSQL(statement=template.format(table=self.table_name), source="rules")


PROMPT_TEMPLATE = """You are an expert SQL generator for CSV data analysis. Given the CSV schema below, convert the English question to a simple SQL SELECT statement.

Schema:
{schema}

Question: {question}

Generate a SQL query that works with CSV data. Use simple WHERE clauses with = or LIKE operators. Always include LIMIT {limit} unless specifically asked for all data.
Reply with the SQL statement only.

SQL:
"""


@dataclass(slots=True)
class LLMSQLGenerator:
    """Generates SQL through the OpenAI Responses API."""

    client: GPTResponseClient
    schema_description: str
    default_limit: int = 100
    max_output_tokens: int | None = 150

    def build_messages(self, question: str) -> list[dict[str, str]]:
        prompt = PROMPT_TEMPLATE.format(
            schema=self.schema_description,
            question=question.strip(),
            limit=self.default_limit,
        )
        return [{"role": "user", "content": prompt}]

    def generate(self, question: str) -> GeneratedSQL:
        if not question or not question.strip():
            raise SQLGenerationError("Question must not be empty")
        try:
            text = self.client.generate_text(
                messages=self.build_messages(question),
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            raise SQLGenerationError(f"OpenAI API error: {exc}") from exc

        statement = clean_generated_sql(text)
        if not statement:
            raise SQLGenerationError("OpenAI API returned no SQL")
        return GeneratedSQL(statement=statement, source="llm")


def clean_generated_sql(text: str) -> str:
    """Strip code fences, a leading ``SQL:`` label and anything after a blank line."""

    cleaned = _CODE_FENCE_RE.sub("", (text or "").strip())
    cleaned = _SQL_PREFIX_RE.sub("", cleaned)
    # completions stop at the first blank line
    cleaned = cleaned.split("\n\n", 1)[0]
    return cleaned.strip()


@dataclass(slots=True)
class FallbackSQLGenerator:
    """Single-level fallback chain: primary first, then one alternate."""

    fallback: SQLGenerator
    primary: SQLGenerator | None = None

    def generate(self, question: str) -> GeneratedSQL:
        if self.primary is None:
            return self.fallback.generate(question)

        try:
            return self.primary.generate(question)
        except SQLGenerationError as primary_error:
            LOGGER.warning("Primary SQL generator failed (%s); using fallback", primary_error)
            try:
                return self.fallback.generate(question)
            except Exception as fallback_error:
                raise SQLGenerationError(str(primary_error)) from fallback_error
