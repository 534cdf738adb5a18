from __future__ import annotations

from typing import Type

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel


def build_structured_chain(llm: BaseChatModel, schema: Type[BaseModel]):
    parser = JsonOutputParser(pydantic_object=schema)
    prompt = ChatPromptTemplate.from_messages(
        [
            ("system", "{system_prompt}\n{format_instructions}"),
            ("human", "{user_prompt}"),
        ]
    )
    chain = prompt | llm | parser
    return chain, parser
